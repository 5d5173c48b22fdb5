"""Shared helpers for timestamps and error handling."""
