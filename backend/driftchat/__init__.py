"""Ephemeral link-based anonymous messaging relay."""
