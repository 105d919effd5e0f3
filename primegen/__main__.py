"""
Description: Demo entry point: `python -m primegen [bits]` generates a probable prime with the parallel search.
Author: primegen maintainers
Date: 18-October-2026
"""
import sys
import time
import logging

from primegen.config import SearchConfig, load_config
from primegen.prime_search import prime

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")

    BITS: int = int(sys.argv[1]) if len(sys.argv) > 1 else 2048
    search_config: SearchConfig = load_config()

    start_time: float = time.time()
    print(f"Starting prime search ({search_config.resolve_num_workers()} workers)…")
    p: int = prime(BITS, config=search_config)
    print(f"\n→ Found probable prime (bit-length {p.bit_length()}):\n{p}\n")
    print("--- %s seconds ---" % (time.time() - start_time))
