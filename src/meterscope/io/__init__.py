"""Snapshot serialization and display formatting."""
