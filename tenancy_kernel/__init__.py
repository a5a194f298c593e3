"""
Tenancy Kernel

Shared foundation for the lease lifecycle engine:
- Typed, coded exceptions
- Structured JSON logging with context propagation
- Injectable clock for deterministic dates
- Workflow value objects for lifecycle tables
- SQLAlchemy base classes, engine and session scope
"""

__version__ = "0.1.0"
