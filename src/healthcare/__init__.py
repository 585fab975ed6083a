"""Healthcare messaging packages."""
