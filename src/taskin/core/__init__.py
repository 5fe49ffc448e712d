"""Core sync logic for Taskin."""
