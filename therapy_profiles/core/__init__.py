"""Core validation logic and shared exceptions."""
