"""Shared helpers used across sftaudit modules."""
