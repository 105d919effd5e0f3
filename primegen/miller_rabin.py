"""
Description: Miller-Rabin probabilistic primality test (FIPS 186-4, C.3.1) with a small-prime pre-filter.
Author: primegen maintainers
Date: 18-October-2026

Notes:
    - Witnesses are drawn with big_random.rand_between (OS CSPRNG), never with the `random` module.
    - Inputs decided by the pre-filter (2, 1, even numbers, the first 250 odd primes and their multiples)
      consume no randomness at all.
"""
from enum import Enum

from primegen.big_random import rand_between
from primegen.config import DEFAULT_ITERATIONS
from primegen.errors import InvalidArgument
from primegen.mod_arith import mod_pow

# The first 250 odd primes (3..1597). 2 is handled separately by the evenness check.
SMALL_PRIMES: tuple[int, ...] = (
    3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 53, 59, 61, 67, 71, 73, 79, 83, 89, 97,
    101, 103, 107, 109, 113, 127, 131, 137, 139, 149, 151, 157, 163, 167, 173, 179, 181, 191, 193,
    197, 199, 211, 223, 227, 229, 233, 239, 241, 251, 257, 263, 269, 271, 277, 281, 283, 293, 307,
    311, 313, 317, 331, 337, 347, 349, 353, 359, 367, 373, 379, 383, 389, 397, 401, 409, 419, 421,
    431, 433, 439, 443, 449, 457, 461, 463, 467, 479, 487, 491, 499, 503, 509, 521, 523, 541, 547,
    557, 563, 569, 571, 577, 587, 593, 599, 601, 607, 613, 617, 619, 631, 641, 643, 647, 653, 659,
    661, 673, 677, 683, 691, 701, 709, 719, 727, 733, 739, 743, 751, 757, 761, 769, 773, 787, 797,
    809, 811, 821, 823, 827, 829, 839, 853, 857, 859, 863, 877, 881, 883, 887, 907, 911, 919, 929,
    937, 941, 947, 953, 967, 971, 977, 983, 991, 997, 1009, 1013, 1019, 1021, 1031, 1033, 1039,
    1049, 1051, 1061, 1063, 1069, 1087, 1091, 1093, 1097, 1103, 1109, 1117, 1123, 1129, 1151, 1153,
    1163, 1171, 1181, 1187, 1193, 1201, 1213, 1217, 1223, 1229, 1231, 1237, 1249, 1259, 1277, 1279,
    1283, 1289, 1291, 1297, 1301, 1303, 1307, 1319, 1321, 1327, 1361, 1367, 1373, 1381, 1399, 1409,
    1423, 1427, 1429, 1433, 1439, 1447, 1451, 1453, 1459, 1471, 1481, 1483, 1487, 1489, 1493, 1499,
    1511, 1523, 1531, 1543, 1549, 1553, 1559, 1567, 1571, 1579, 1583, 1597
)


class PrimalityOutcome(Enum):
    PROBABLY_PRIME = "probably_prime"
    COMPOSITE = "composite"


def trial_division(w: int) -> PrimalityOutcome | None:
    """
    Deterministic pre-filter: decide w using parity and the table of small primes, if possible.

    Args:
        w (int): A non-negative integer.

    Returns:
        PrimalityOutcome | None: The outcome if the pre-filter decides it, None if Miller-Rabin rounds are needed.
    """
    if w == 2:
        return PrimalityOutcome.PROBABLY_PRIME
    if w % 2 == 0 or w == 1:
        return PrimalityOutcome.COMPOSITE  # 0, 1 and every even number but 2

    for p in SMALL_PRIMES:
        if p > w:
            break
        if w == p:
            return PrimalityOutcome.PROBABLY_PRIME
        if w % p == 0:
            return PrimalityOutcome.COMPOSITE
    return None


def miller_rabin_test(w: int, iterations: int = DEFAULT_ITERATIONS) -> PrimalityOutcome:
    """
    Perform the Miller-Rabin primality test on w.

    NOTE: Miller-Rabin is probabilistic. Each round picks a random witness b in [2, w-2] and tries to prove
    that w is composite. A composite w survives one round with probability at most 1/4, so it survives
    all rounds with probability at most 1/4^iterations. COMPOSITE is always a proof; PROBABLY_PRIME is not.

    Args:
        w (int): The number to be tested (w >= 0).
        iterations (int, optional): Number of rounds. Should be consistent with FIPS 186-4 tables C.1, C.2 or C.3.
            Defaults to 16.

    Returns:
        PrimalityOutcome: PROBABLY_PRIME or COMPOSITE.

    Raises:
        InvalidArgument: If w < 0 or iterations < 1.
    """
    if w < 0:
        raise InvalidArgument("w MUST be >= 0")
    if iterations < 1:
        raise InvalidArgument("iterations MUST be >= 1")

    prefiltered: PrimalityOutcome | None = trial_division(w)
    if prefiltered is not None:
        return prefiltered

    # Write w-1 as 2^a * m with m odd (by factoring out all 2s from w-1)
    a: int = 0
    m: int = w - 1
    while m % 2 == 0:
        m //= 2
        a += 1
    # Now w-1 = 2^a * m, with m odd and a > 0 (w is odd here)

    def _miller_rabin_single_round(b: int) -> bool:
        """
        Perform a single round of the test with witness b.

        Args:
            b (int): The witness, in [2, w-2].

        Returns:
            bool: True if w passes this round, False if b proves w composite.
        """
        z: int = mod_pow(b, m, w)

        # 1st check: b^m = 1 or -1 (mod w), this round passes
        if z == 1 or z == w - 1:
            return True

        # 2nd check: square up to a-1 more times looking for -1
        for _ in range(a - 1):
            z = mod_pow(z, 2, w)
            if z == w - 1:
                return True
            if z == 1:
                # Reached 1 without going through -1: z is a non-trivial square root of 1, so w is composite
                return False

        # Never reached w-1, so w is composite
        return False

    for _ in range(iterations):
        # Witness b in [2, w-2] (1 < b < w-1)
        b: int = rand_between(w - 2, 2)
        if not _miller_rabin_single_round(b):
            return PrimalityOutcome.COMPOSITE

    # Passed all rounds: false positive rate <= 1/4^iterations
    return PrimalityOutcome.PROBABLY_PRIME


def is_probable_prime(w: int, iterations: int = DEFAULT_ITERATIONS) -> bool:
    """
    Test w for primality: small-prime trial division followed by `iterations` Miller-Rabin rounds.

    Args:
        w (int): A non-negative integer to be tested.
        iterations (int, optional): Number of Miller-Rabin rounds. Defaults to 16.

    Returns:
        bool: True if w is a probable prime, False if it is definitely composite.

    Raises:
        InvalidArgument: If w < 0 or iterations < 1.
    """
    return miller_rabin_test(w, iterations) is PrimalityOutcome.PROBABLY_PRIME
