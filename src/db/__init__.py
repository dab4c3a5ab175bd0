"""Persistence: engine, sessions, models and stores."""
