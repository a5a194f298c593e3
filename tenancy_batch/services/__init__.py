"""Reminder batch services: the per-day runner and the scheduler thread."""
