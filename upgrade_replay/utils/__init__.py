"""Shared utilities: structured logging and duration formatting."""
