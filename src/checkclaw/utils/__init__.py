"""Shared helpers for formatting, dates, prompts and logging."""
