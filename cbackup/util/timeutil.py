"""Utility functions for time operations."""

from datetime import datetime, timezone


def now_iso() -> str:
    """Get current timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


def format_duration(seconds: float) -> str:
    """Format an elapsed time as e.g. 4.2s, 3m 07s or 1h 02m."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"
    
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"
