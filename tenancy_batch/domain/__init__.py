"""Pure types of the reminder batch."""
