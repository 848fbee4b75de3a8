"""Shared utilities: logging, helpers and retry."""
