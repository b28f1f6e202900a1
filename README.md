# bchneutrino

Building blocks for a light client that follows a chain through compact
block filters, in plain Python with no dependencies outside the standard
library.

## What is inside

- `bchneutrino.wire`: `ChainHash` (a 32-byte hash whose string form is the
  byte-reversed hex, parsed with `ChainHash.from_str`), `BlockHeader`
  (80-byte `serialize` / `from_bytes` and `block_hash`) and `double_sha256`.
- `bchneutrino.chainsync`: `Network`, `FilterType`, `ChainParams` and the
  ready-made `MAINNET_PARAMS`, `TESTNET3_PARAMS`, `REGTEST_PARAMS` and
  `SIMNET_PARAMS`. `control_cf_header` checks a filter header against known
  checkpoints: it returns `True` when a checkpoint at that height matches,
  `False` when there is none to check against, and raises
  `CheckpointMismatchError` on a mismatch. A custom checkpoint table can be
  passed in.
- `bchneutrino.block_store`: `BlockHeaderStore` keeps block headers in a flat
  file with a hash-to-height index. It handles chain tip lookups, fetching by
  hash or height, ancestor ranges, block locators, single-block rollback
  (returning a `BlockStamp`) and `check_connectivity`. A new store is seeded
  with the genesis header of its `ChainParams`; on reopening, headers in the
  file that the index never recorded are trimmed off.
  `calc_past_median_time` returns the median time of a set of headers.
- `bchneutrino.filter_store`: `FilterHeaderStore` does the same job for
  regular compact-filter headers (`FilterHeader`). It can be given a header
  state assertion; if the header on disk at that height differs, the file is
  wiped and rebuilt from genesis.
- `bchneutrino.index` and `bchneutrino.flatfile`: the layers the two stores
  are built on. `HeaderIndex` stores hash-to-height entries and per-type
  chain tips in an SQLite database (a path or a shared `sqlite3.Connection`);
  `HeaderFile` is an append-only file of fixed-size headers addressed by
  height.
- `bchneutrino.notifications`: `Connected` and `Disconnected` block
  notifications, both `BlockNtfn`s.
- `bchneutrino.manager`: `SubscriptionManager` relays notifications from a
  `NotificationSource` to many subscribers. `new_subscription(best_height)`
  first queues the backlog the source reports since that height. Each
  `Subscription` reads from a `ConcurrentQueue` and can be cancelled.
- `bchneutrino.concurrent_queue`: an unbounded, thread-safe FIFO
  `ConcurrentQueue` that accepts items between `start` and `stop`.
- `bchneutrino.lrucache`: a size-aware, thread-safe `LRUCache`, with
  `CacheableFilter` and `CacheableBlock` wrappers and `FilterCacheKey`.

## What it does not do

There is no peer-to-peer networking, no syncing logic and no wallet client.
Compact filters themselves are neither built nor stored: `FilterHeaderStore`
must be given the genesis filter header (`genesis_filter_hash`) to seed a new
store, and `CacheableFilter` / `CacheableBlock` only wrap objects supplied by
the caller.

## Installing

```
pip install .
```

To install with the test dependencies and run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from bchneutrino.lrucache import LRUCache, ElementNotFoundError


class Item:
    def __init__(self, value, size):
        self.value = value
        self._size = size

    def size(self):
        return self._size


cache = LRUCache(2)
cache.put("a", Item(1, 1))
cache.put("b", Item(2, 1))
cache.get("a")              # "a" becomes the most recently used entry
cache.put("c", Item(3, 1))  # evicts "b", the least recently used entry

try:
    cache.get("b")
except ElementNotFoundError:
    print("b was evicted")
```