"""Domain services for the snapshot API."""
