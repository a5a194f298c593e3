"""
Pure domain layer.

Value objects shared by the engines and modules, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time enters only through an injected Clock.
"""

from tenancy_kernel.domain.amounts import round2, to_decimal
from tenancy_kernel.domain.dates import add_months, add_years, clamped_date
from tenancy_kernel.domain.parties import PartyRole
from tenancy_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from tenancy_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "Guard",
    "PartyRole",
    "SystemClock",
    "Transition",
    "Workflow",
    "add_months",
    "add_years",
    "clamped_date",
    "round2",
    "to_decimal",
]
