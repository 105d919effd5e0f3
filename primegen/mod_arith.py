"""
Description: Modular arithmetic helpers on arbitrary-precision integers.
Author: primegen maintainers
Date: 18-October-2026

Notes:
    - Python ints are already arbitrary precision, so no overflow handling is needed anywhere here.
    - Exponentiation uses the builtin pow(); no k-ary or Montgomery variants.
"""
import math

from primegen.errors import InvalidArgument


def bit_length(a: int) -> int:
    """
    Return the number of significant bits of |a|.

    Args:
        a (int): Any integer.

    Returns:
        int: The bit length of |a| (0 for a = 0).
    """
    return abs(a).bit_length()


def egcd(a: int, b: int) -> tuple[int, int, int]:
    """
    Iterative extended Euclidean algorithm.

    Args:
        a (int): A positive integer.
        b (int): A positive integer.

    Returns:
        tuple[int, int, int]: A triple (g, x, y) such that a*x + b*y = g = gcd(a, b).

    Raises:
        InvalidArgument: If a or b is not positive.
    """
    if a <= 0 or b <= 0:
        raise InvalidArgument("a and b MUST be > 0")

    x: int = 0
    y: int = 1
    u: int = 1
    v: int = 0
    while a != 0:
        q, r = divmod(b, a)
        m: int = x - u * q
        n: int = y - v * q
        b, a = a, r
        x, y = u, v
        u, v = m, n
    return b, x, y


def gcd(a: int, b: int) -> int:
    """Greatest common divisor of |a| and |b|."""
    return math.gcd(a, b)


def lcm(a: int, b: int) -> int:
    """Least common multiple |a*b| / gcd(a, b), with lcm(0, 0) = 0."""
    if a == 0 and b == 0:
        return 0
    return abs(a * b) // math.gcd(a, b)


def to_zn(a: int, n: int) -> int:
    """
    Find the smallest non-negative element congruent to a modulo n.

    Args:
        a (int): An integer.
        n (int): The modulus.

    Returns:
        int: a mod n in [0, n-1].

    Raises:
        InvalidArgument: If n <= 0.
    """
    if n <= 0:
        raise InvalidArgument("n MUST be > 0")
    return a % n  # Python's % already returns a value with the sign of n


def mod_inv(a: int, n: int) -> int:
    """
    Modular inverse of a modulo n.

    Args:
        a (int): The number to invert.
        n (int): The modulus.

    Returns:
        int: x in [0, n-1] with a*x = 1 (mod n).

    Raises:
        InvalidArgument: If n <= 0 or a has no inverse modulo n.
    """
    a_zn: int = to_zn(a, n)
    if a_zn == 0:
        raise InvalidArgument(f"{a} does not have inverse modulo {n}")
    g, x, _ = egcd(a_zn, n)
    if g != 1:
        raise InvalidArgument(f"{a} does not have inverse modulo {n}")
    return to_zn(x, n)


def mod_pow(b: int, e: int, n: int) -> int:
    """
    Modular exponentiation b^e mod n.

    Args:
        b (int): Base.
        e (int): Exponent. A negative exponent means (b^-1)^|e|.
        n (int): Modulus.

    Returns:
        int: b^e mod n (always 0 when n = 1).

    Raises:
        InvalidArgument: If n <= 0, or e < 0 and b has no inverse modulo n.
    """
    if n <= 0:
        raise InvalidArgument("n MUST be > 0")
    if n == 1:
        return 0
    b = to_zn(b, n)
    if e < 0:
        return mod_inv(pow(b, -e, n), n)
    return pow(b, e, n)
