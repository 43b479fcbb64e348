"""Shared helpers for log-safe formatting."""

from datetime import datetime
from typing import Optional


def mask_secret(value: Optional[str], keep: int = 2) -> str:
    """Hide all but the first and last *keep* characters of *value*."""
    if not value:
        return ""
    if len(value) <= keep * 2:
        return "*" * len(value)
    return f"{value[:keep]}***{value[-keep:]}"


def format_timestamp(epoch_seconds: float) -> str:
    """Render a Unix timestamp in local time for log output."""
    return datetime.fromtimestamp(epoch_seconds).strftime("%Y-%m-%d %H:%M:%S")
