"""
Module ORM Registry (``tenancy_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created, and provide ``create_all_tables()`` as the single entry point
for scripts and ``tests/conftest.py``.

Architecture position
---------------------
**Modules layer** -- utility. MUST NOT be imported by ``tenancy_kernel``.
"""


def import_all_orm_models() -> None:
    """Import every ``tenancy_modules.*.orm`` module. Idempotent."""
    import tenancy_modules.lease.orm  # noqa: F401


def create_all_tables() -> None:
    """Create all module ORM tables.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    """
    from tenancy_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
