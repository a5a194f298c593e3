"""
Idempotency key generation utilities.

Scheduled jobs re-run; the key makes a second run for the same entity, the
same date and the same job type a no-op. The key is stored with a unique
constraint.
"""

from datetime import date
from uuid import UUID


def generate_idempotency_key(
    entity_id: UUID | str,
    on_date: date,
    job_type: str,
) -> str:
    """
    Generate an idempotency key for a dated job on one entity.

    Format: entity_id:YYYY-MM-DD:job_type

    Example:
        >>> generate_idempotency_key(lease_id, date(2024, 3, 1), "today")
        "550e8400-e29b-41d4-a716-446655440000:2024-03-01:today"
    """
    return f"{entity_id}:{on_date.isoformat()}:{job_type}"


def parse_idempotency_key(key: str) -> tuple[str, date, str]:
    """
    Parse an idempotency key into its components.

    Raises:
        ValueError: If key format is invalid.
    """
    parts = key.split(":", 2)
    if len(parts) != 3:
        raise ValueError(f"Invalid idempotency key format: {key}")
    return parts[0], date.fromisoformat(parts[1]), parts[2]
