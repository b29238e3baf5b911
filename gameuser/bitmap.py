"""Bitmap helpers for monthly sign-in days and claimed rewards.

Bits are numbered from 1 to 31, so a bitmap fits a signed 32-bit value
and bit ``n`` stands for day ``n`` of a month.
"""

MIN_BIT = 1
MAX_BIT = 31
FULL_MASK = 0x7FFFFFFF


def _in_range(bit: int) -> bool:
    return MIN_BIT <= bit <= MAX_BIT


def set_bit(value: int, bit: int) -> int:
    """Return ``value`` with ``bit`` set; out-of-range bits leave it unchanged."""
    if not _in_range(bit):
        return value
    return value | (1 << (bit - 1))


def clear_bit(value: int, bit: int) -> int:
    """Return ``value`` with ``bit`` cleared; out-of-range bits leave it unchanged."""
    if not _in_range(bit):
        return value
    return value & ~(1 << (bit - 1))


def get_bit(value: int, bit: int) -> bool:
    """Tell whether ``bit`` is set; out-of-range bits read as unset."""
    if not _in_range(bit):
        return False
    return bool(value & (1 << (bit - 1)))


def get_set_bits(value: int) -> list[int]:
    """Return the numbers of all set bits, in ascending order."""
    return [bit for bit in range(MIN_BIT, MAX_BIT + 1) if get_bit(value, bit)]


def count_bits(value: int) -> int:
    """Count the set bits of a positive value; zero and negatives count as 0."""
    if value <= 0:
        return 0
    return bin(value).count("1")


def has_bit(value: int, bit: int) -> bool:
    """Tell whether ``bit`` is set."""
    return get_bit(value, bit)


def is_empty(value: int) -> bool:
    """Tell whether no bit is set."""
    return value == 0


def is_full(value: int) -> bool:
    """Tell whether all 31 bits are set."""
    return value == FULL_MASK