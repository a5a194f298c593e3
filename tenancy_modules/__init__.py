"""
Tenancy modules.

Thin orchestration over the pure engines: lease aggregate, signature
coordination, lifecycle state machine, persistence adapters and the
service facade that owns transaction boundaries.
"""
