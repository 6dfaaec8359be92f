"""Event log and admin analytics for reviews and recommendations."""
