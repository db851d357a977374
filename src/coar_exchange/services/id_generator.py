"""Prefixed ID generation utility."""

import uuid


def generate_id(prefix: str) -> str:
    """Generate a prefixed unique ID.

    Args:
        prefix: The prefix (e.g., "ntf_", "job_").

    Returns:
        A string like "ntf_a1b2c3d4e5f6a7b8".
    """
    return f"{prefix}{uuid.uuid4().hex[:16]}"


def generate_notification_uri(inbox_url: str) -> str:
    """Mint a notification id under this instance's inbox namespace."""
    return f"{inbox_url.rstrip('/')}/notifications/{uuid.uuid4()}"
