"""
tenancy_batch.domain.types -- Pure frozen dataclasses for the reminder run.

ZERO I/O. Frozen dataclasses with enum status fields and tuples for
immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from uuid import UUID

from tenancy_engines.revision_anchor import RevisionReminder


class ReminderItemStatus(str, Enum):
    """Outcome of evaluating one lease."""

    EMITTED = "emitted"  # Reminder claimed and dispatched
    SKIPPED_DUPLICATE = "skipped_duplicate"  # Dedup key already claimed
    NO_REMINDER = "no_reminder"  # Nothing due today
    FAILED = "failed"  # Evaluation or dispatch raised


@dataclass(frozen=True)
class ReminderItemResult:
    """Per-lease result of a reminder run."""

    lease_id: UUID
    status: ReminderItemStatus
    reminder: RevisionReminder | None = None
    error_code: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class ReminderRunResult:
    """Summary of one reminder run."""

    run_date: date
    items: tuple[ReminderItemResult, ...] = ()

    def _count(self, status: ReminderItemStatus) -> int:
        return sum(1 for item in self.items if item.status == status)

    @property
    def evaluated(self) -> int:
        return len(self.items)

    @property
    def emitted(self) -> int:
        return self._count(ReminderItemStatus.EMITTED)

    @property
    def skipped(self) -> int:
        return self._count(ReminderItemStatus.SKIPPED_DUPLICATE)

    @property
    def failed(self) -> int:
        return self._count(ReminderItemStatus.FAILED)

    @property
    def reminders(self) -> tuple[RevisionReminder, ...]:
        return tuple(
            item.reminder for item in self.items
            if item.status == ReminderItemStatus.EMITTED and item.reminder is not None
        )
