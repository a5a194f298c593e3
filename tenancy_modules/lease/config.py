"""
Lease Lifecycle Configuration Schema.

Defines the restitution deadline, the reminder lead time, the provisional
retention cap, the rent increase caps and the retry and scheduling settings
of the lifecycle service.
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Self

import yaml

from tenancy_kernel.domain.amounts import to_decimal
from tenancy_kernel.logging_config import get_logger

logger = get_logger("modules.lease.config")


@dataclass
class LeaseConfig:
    """Configuration schema for the lease lifecycle module."""

    # Days after move-out by which the deposit must be returned
    restitution_deadline_days: int = 30

    # Days ahead of the revision anchor for the early reminder
    revision_reminder_lead_days: int = 30

    # Share of the deposit that may be held back for provisional charges
    provisional_retention_ratio: Decimal = Decimal("0.20")

    # Yearly rent increase caps, in percent
    max_rent_increase_percentage: Decimal = Decimal("3.5")
    rent_controlled_max_increase_percentage: Decimal = Decimal("2.5")

    # Reload-and-retry attempts after an optimistic version conflict
    max_conflict_retries: int = 3

    # Reminder scheduler wake-up interval
    reminder_tick_interval_seconds: int = 3600

    def __post_init__(self):
        self.provisional_retention_ratio = to_decimal(self.provisional_retention_ratio)
        self.max_rent_increase_percentage = to_decimal(self.max_rent_increase_percentage)
        self.rent_controlled_max_increase_percentage = to_decimal(
            self.rent_controlled_max_increase_percentage
        )

        if self.restitution_deadline_days <= 0:
            raise ValueError("restitution_deadline_days must be positive")
        if self.revision_reminder_lead_days <= 0:
            raise ValueError("revision_reminder_lead_days must be positive")
        if not Decimal("0") <= self.provisional_retention_ratio <= Decimal("1"):
            raise ValueError("provisional_retention_ratio must be between 0 and 1")
        if self.max_rent_increase_percentage <= 0:
            raise ValueError("max_rent_increase_percentage must be positive")
        if self.rent_controlled_max_increase_percentage <= 0:
            raise ValueError("rent_controlled_max_increase_percentage must be positive")
        if self.max_conflict_retries < 1:
            raise ValueError("max_conflict_retries must be at least 1")
        if self.reminder_tick_interval_seconds <= 0:
            raise ValueError("reminder_tick_interval_seconds must be positive")

        logger.info(
            "lease_config_initialized",
            extra={
                "restitution_deadline_days": self.restitution_deadline_days,
                "revision_reminder_lead_days": self.revision_reminder_lead_days,
                "provisional_retention_ratio": str(self.provisional_retention_ratio),
                "max_conflict_retries": self.max_conflict_retries,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the statutory defaults."""
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown lease config keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """
        Load the config from a YAML file.

        The settings may sit at the top level or under a ``lease:`` key.
        An empty file yields the defaults.
        """
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Lease config in {path} must be a mapping")
        if "lease" in data and isinstance(data["lease"], dict):
            data = data["lease"]

        logger.info("lease_config_loaded", extra={"path": str(path)})
        return cls.from_dict(data)
