"""
Description: Cryptographically secure random bytes, bits and bounded integers.
Author: primegen maintainers
Date: 18-October-2026

Notes:
    - All randomness comes from the `secrets` module (OS CSPRNG). `random` is never used here.
    - Safe to call from forked/spawned worker processes: there is no PRNG state to duplicate.
"""
import math
import secrets

from primegen.errors import InvalidArgument
from primegen.mod_arith import bit_length


def rand_bytes(byte_length: int, force_length: bool = False) -> bytes:
    """
    Generate `byte_length` cryptographically secure random bytes.

    Args:
        byte_length (int): Number of random bytes.
        force_length (bool, optional): Force the most significant bit to 1, so the big-endian value
            has exactly 8 * byte_length bits. Defaults to False.

    Returns:
        bytes: The random bytes.

    Raises:
        InvalidArgument: If byte_length < 1.
    """
    if byte_length < 1:
        raise InvalidArgument("byte_length MUST be > 0")

    buf: bytearray = bytearray(secrets.token_bytes(byte_length))
    if force_length:
        buf[0] |= 0x80
    return bytes(buf)


def rand_bits(n_bits: int, force_length: bool = False) -> bytes:
    """
    Generate `n_bits` cryptographically secure random bits, packed big-endian into bytes.

    The unused high bits of the first byte are always cleared, so the value is in [0, 2^n_bits - 1].

    Args:
        n_bits (int): Number of random bits.
        force_length (bool, optional): Force the top bit (bit n_bits - 1) to 1, so the value has
            exactly `n_bits` significant bits. Defaults to False.

    Returns:
        bytes: ceil(n_bits / 8) bytes holding the random bits.

    Raises:
        InvalidArgument: If n_bits < 1.
    """
    if n_bits < 1:
        raise InvalidArgument("bit_length MUST be > 0")

    byte_length: int = math.ceil(n_bits / 8)
    buf: bytearray = bytearray(rand_bytes(byte_length))
    bits_mod_8: int = n_bits % 8

    if bits_mod_8 != 0:
        buf[0] &= (1 << bits_mod_8) - 1  # clear the extra high bits

    if force_length:
        top_bit_mask: int = (1 << (bits_mod_8 - 1)) if bits_mod_8 != 0 else 0x80
        buf[0] |= top_bit_mask

    return bytes(buf)


def from_bytes(buf: bytes) -> int:
    """Big-endian unsigned integer from bytes."""
    return int.from_bytes(buf, byteorder="big")


def rand_bits_int(n_bits: int, force_length: bool = False) -> int:
    """Same as rand_bits() but returns the value as an int."""
    return from_bytes(rand_bits(n_bits, force_length))


def rand_between(max_value: int, min_value: int = 1) -> int:
    """
    Return a cryptographically secure random integer uniformly distributed in [min_value, max_value].

    Uses rejection sampling: draw bit_length(max - min) random bits and retry while the draw exceeds max - min.
    Each draw is accepted with probability > 1/2, so the expected number of draws is < 2.

    Args:
        max_value (int): Inclusive upper bound (> 0).
        min_value (int, optional): Inclusive lower bound (>= 0). Defaults to 1.

    Returns:
        int: A random integer in [min_value, max_value].

    Raises:
        InvalidArgument: Unless max_value > 0, min_value >= 0 and max_value > min_value.
    """
    if max_value <= 0 or min_value < 0 or max_value <= min_value:
        raise InvalidArgument("Arguments MUST be: max > 0 && min >= 0 && max > min")

    interval: int = max_value - min_value
    interval_bits: int = bit_length(interval)

    while True:
        offset: int = rand_bits_int(interval_bits)
        if offset <= interval:
            return offset + min_value
