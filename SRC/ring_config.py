
"""Ring configuration.
Plain frozen dataclass; callers load values however they like and build a ring from it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, TypeVar

from consistent_hash_ring import ConsistentHash, InvalidRingConfig, check_replicas, make_hash_fn

T = TypeVar("T")

# xxh32 seeds are unsigned 32-bit; wider values are truncated by xxhash
SEED_MAX = 0xFFFFFFFF


@dataclass(frozen=True)
class RingConfig:
    replicas: int = 160
    seed: int = 0

    def __post_init__(self):
        check_replicas(self.replicas)
        if isinstance(self.seed, bool) or not isinstance(self.seed, int) or not 0 <= self.seed <= SEED_MAX:
            raise InvalidRingConfig(f"seed must be an int in [0, {SEED_MAX:#x}], got {self.seed!r}")

    def build(self, nodes: Iterable[T] = (), node_to_str: Callable[[T], str] = str) -> ConsistentHash[T]:
        return ConsistentHash(self.replicas, nodes, node_to_str=node_to_str,
                              hash_fn=make_hash_fn(self.seed))
