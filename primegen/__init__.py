"""
primegen: big-integer modular arithmetic, secure random numbers and Miller-Rabin probable-prime generation.
"""
from primegen.errors import PrimeGenError, InvalidArgument, WorkerFailure
from primegen.config import SearchConfig, load_config
from primegen.mod_arith import bit_length, egcd, gcd, lcm, to_zn, mod_inv, mod_pow
from primegen.big_random import rand_bytes, rand_bits, rand_between
from primegen.miller_rabin import is_probable_prime
from primegen.prime_search import prime, prime_sync

__all__ = [
    "PrimeGenError", "InvalidArgument", "WorkerFailure",
    "SearchConfig", "load_config",
    "bit_length", "egcd", "gcd", "lcm", "to_zn", "mod_inv", "mod_pow",
    "rand_bytes", "rand_bits", "rand_between",
    "is_probable_prime",
    "prime", "prime_sync",
]
