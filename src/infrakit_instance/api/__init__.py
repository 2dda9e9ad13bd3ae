"""Instance plugin HTTP API."""
