"""
Utility helpers for the screening session core

Simple utility functions for ID generation, timestamps and titles.
"""

import uuid
from datetime import datetime, timezone


def generate_session_id(short=False):
    """
    Generate unique session identifier

    Args:
        short (bool): If True, return 8-char hex. If False, return full
            upper-case UUID string.

    Returns:
        str: Session ID

    Examples:
        >>> generate_session_id()
        'A3F7E2B9-C1D2-4E3F-A5B6-C7D8E9F0A1B2'

        >>> generate_session_id(short=True)
        'a3f7e2b9'
    """
    if short:
        return uuid.uuid4().hex[:8]
    return str(uuid.uuid4()).upper()


def utc_now():
    """Current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def format_session_title(date):
    """
    Display title for a session

    Format: 'Session MM/DD/YY' in the timestamp's own timezone.

    Args:
        date (datetime): Session creation time

    Returns:
        str: Title for display only (never used for identity)

    Examples:
        >>> format_session_title(datetime(2025, 3, 7, tzinfo=timezone.utc))
        'Session 03/07/25'
    """
    return f"Session {date.strftime('%m/%d/%y')}"
