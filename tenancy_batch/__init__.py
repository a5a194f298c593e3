"""
tenancy_batch -- Daily revision reminder job.

Evaluates every revisable lease once per day, emits ``today`` and
``30_days`` revision reminders, and drives the evaluation from an
in-process scheduler thread.

Architecture:
    tenancy_batch/ is a top-level package. It depends on tenancy_engines
    and tenancy_modules; nothing imports from tenancy_batch.

Invariants:
    - SAVEPOINT isolation per lease: one failing lease never aborts the run.
    - Idempotency: a reminder's dedup key ``(lease_id, anchor_date,
      reminder_type)`` is claimed once; reruns on the same day are no-ops.
    - Clock injection: "today" always comes from the injected Clock.
"""
