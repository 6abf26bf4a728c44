"""Core utilities: clock and configuration management."""
