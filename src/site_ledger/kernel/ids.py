"""
Identifier and document code generation

Entity ids are UUIDv7-like strings: the leading 48 bits carry the creation
time in milliseconds, so ids sort in creation order and keep the event log
naturally ordered.

Document codes (CST-20250115-4F2A9C) are the human-facing numbers printed on
cost slips, invoices and payment requests.
"""

import secrets
import time
from datetime import datetime


def generate_id() -> str:
    """
    Generate a UUIDv7-like identifier (time-ordered UUID)

    Format: 8-4-4-4-12 hex characters (36 chars with hyphens)
    First 48 bits: Unix timestamp in milliseconds
    Next 12 bits: Random
    Remaining 62 bits: Random

    Returns:
        Sortable UUID string (e.g., "01908e9a-3b87-7000-8000-123456789abc")
    """
    timestamp_48 = int(time.time() * 1000) & 0xFFFFFFFFFFFF

    rand_12 = secrets.randbits(12)
    rand_62 = secrets.randbits(62)

    # Version 7 (0111) in bits 48-51, variant (10) in bits 64-65
    time_high = (timestamp_48 >> 32) & 0xFFFF
    time_mid = (timestamp_48 >> 16) & 0xFFFF
    time_low_and_version = ((timestamp_48 & 0xFFFF) << 16) | (0x7000 | rand_12)
    clock_seq_and_variant = 0x8000 | ((rand_62 >> 48) & 0x3FFF)
    node = rand_62 & 0xFFFFFFFFFFFF

    return (
        f"{time_high:04x}{time_mid:04x}-"
        f"{(time_low_and_version >> 16) & 0xFFFF:04x}-"
        f"{time_low_and_version & 0xFFFF:04x}-"
        f"{clock_seq_and_variant:04x}-"
        f"{node:012x}"
    )


def generate_code(prefix: str, now: datetime) -> str:
    """
    Generate a document code such as ``PAY-20250115-9C41E0``

    Args:
        prefix: Document family prefix (CST, INV, PAY)
        now: Issue time, supplies the date segment

    Returns:
        Upper-case code; the random suffix carries 24 bits
    """
    return f"{prefix}-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"
