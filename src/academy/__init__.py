"""Academy administration API."""
