"""Order ID generation."""

import secrets
import time

PROGRAM_PREFIX = "PRG"
MEMBERSHIP_PREFIX = "MEM"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    """Encode a non-negative integer in base 36 (lower-case digits)."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_order_id(prefix: str = "ORD") -> str:
    """Generate a collision-resistant order ID.

    Format is ``<PREFIX>-<base36 millisecond timestamp>-<8 hex chars>``,
    upper-cased, e.g. ``PRG-LZ3K9Q1A-9F2C01AB``.

    Args:
        prefix: Type tag (PRG for programs, MEM for memberships)

    Returns:
        Upper-cased order ID
    """
    ts = to_base36(time.time_ns() // 1_000_000)
    rnd = secrets.token_hex(4)
    return f"{prefix}-{ts}-{rnd}".upper()
