"""Library persistence on SQLite."""
