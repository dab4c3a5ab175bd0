"""HTTP API for solved-sync."""
