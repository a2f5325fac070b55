
"""Consistent hashing ring using xxh32.
- Signed 32-bit position space, wraps from max to min
- Virtual nodes: `replicas` positions per node, hashed from "<node>#<i>"
- Copy-on-write snapshots: writers lock, readers never block

Collisions are not detected or rehashed: when two virtual-node keys hash to
the same position the later add wins, and removing either node deletes that
position. A warning is logged when an add overwrites a different node.
"""
from __future__ import annotations

from typing import Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar
import bisect
import logging
import threading

try:
    import xxhash
except ImportError as e:
    raise RuntimeError("xxhash is required. Install with: pip install xxhash") from e

log = logging.getLogger(__name__)

T = TypeVar("T")

POSITION_MIN = -(1 << 31)
POSITION_MAX = (1 << 31) - 1
RING_SIZE = 1 << 32


class InvalidRingConfig(ValueError):
    """Raised when a ring is built with unusable parameters."""


def xxh32_signed(text: str, seed: int = 0) -> int:
    v = xxhash.xxh32_intdigest(text.encode("utf-8"), seed=seed)
    return v - RING_SIZE if v > POSITION_MAX else v


def make_hash_fn(seed: int = 0) -> Callable[[str], int]:
    def _hash(text: str) -> int:
        return xxh32_signed(text, seed)
    return _hash


def check_replicas(replicas) -> int:
    if isinstance(replicas, bool) or not isinstance(replicas, int):
        raise InvalidRingConfig(f"replicas must be an int, got {type(replicas).__name__}")
    if replicas < 1:
        raise InvalidRingConfig(f"replicas must be >= 1, got {replicas}")
    return replicas


class _Snapshot(Generic[T]):
    """Immutable view of the ring: sorted positions with aligned owners.

    Every add/remove builds a new snapshot, so writes cost O(n log n) in the
    number of entries; lookups stay O(log n) and take no lock.
    """
    __slots__ = ("circle", "positions", "owners")

    def __init__(self, circle: Dict[int, T]):
        self.circle = circle
        self.positions: Tuple[int, ...] = tuple(sorted(circle))
        self.owners: Tuple[T, ...] = tuple(circle[p] for p in self.positions)

    def successor(self, h: int) -> int:
        """Index of the entry at h, or the next one clockwise."""
        idx = bisect.bisect_left(self.positions, h)
        return 0 if idx == len(self.positions) else idx


class ConsistentHash(Generic[T]):
    """Consistent hashing ring of caller-supplied nodes.

    `node_to_str` projects a node to the string its virtual positions are
    hashed from; `hash_fn` maps a string to a signed 32-bit position.
    Both are fixed for the ring's lifetime, as is `replicas`.
    """
    def __init__(self, replicas: int, nodes: Iterable[T] = (),
                 node_to_str: Callable[[T], str] = str,
                 hash_fn: Optional[Callable[[str], int]] = None):
        self._replicas = check_replicas(replicas)
        self._node_to_str = node_to_str
        self._hash_fn = hash_fn if hash_fn is not None else make_hash_fn()
        self._lock = threading.RLock()
        circle: Dict[int, T] = {}
        for node in nodes:
            self._place(circle, node)
        self._snap: _Snapshot[T] = _Snapshot(circle)

    @property
    def replicas(self) -> int:
        return self._replicas

    def _tokens_for(self, node: T) -> List[int]:
        name = self._node_to_str(node)
        return [self._hash_fn(f"{name}#{i}") for i in range(self._replicas)]

    def _place(self, circle: Dict[int, T], node: T) -> None:
        name = self._node_to_str(node)
        for token in self._tokens_for(node):
            if token in circle and self._node_to_str(circle[token]) != name:
                log.warning("position collision at %d: %s overwrites %s",
                            token, name, self._node_to_str(circle[token]))
            circle[token] = node

    def add(self, node: T) -> None:
        with self._lock:
            circle = dict(self._snap.circle)
            self._place(circle, node)
            self._snap = _Snapshot(circle)
        log.debug("added node=%s vnodes=%d", self._node_to_str(node), self._replicas)

    def remove(self, node: T) -> None:
        with self._lock:
            circle = dict(self._snap.circle)
            removed = 0
            for token in self._tokens_for(node):
                if token in circle:
                    del circle[token]
                    removed += 1
            if removed:
                self._snap = _Snapshot(circle)
        log.debug("removed node=%s vnodes=%d", self._node_to_str(node), removed)

    def get(self, key: object) -> Optional[T]:
        snap = self._snap
        if not snap.positions:
            return None
        h = self._hash_fn(str(key))
        return snap.owners[snap.successor(h)]

    def get_nodes(self, key: object, count: int = 1) -> List[T]:
        """Preference list: up to `count` distinct nodes clockwise from `key`."""
        if count < 1:
            raise ValueError(f"count must be >= 1, got {count}")
        snap = self._snap
        n = len(snap.positions)
        if n == 0:
            return []
        start = snap.successor(self._hash_fn(str(key)))
        out: List[T] = []
        seen: set[str] = set()
        for i in range(n):
            node = snap.owners[(start + i) % n]
            name = self._node_to_str(node)
            if name not in seen:
                seen.add(name)
                out.append(node)
                if len(out) >= count:
                    break
        return out

    def nodes(self) -> List[T]:
        seen: Dict[str, T] = {}
        for node in self._snap.owners:
            seen.setdefault(self._node_to_str(node), node)
        return list(seen.values())

    def __len__(self) -> int:
        return len(self._snap.positions)

    def __contains__(self, node: T) -> bool:
        name = self._node_to_str(node)
        return any(self._node_to_str(n) == name for n in self._snap.owners)

    def dump_tokens(self) -> List[Tuple[int, T]]:
        snap = self._snap
        return list(zip(snap.positions, snap.owners))

    def coverage(self) -> Dict[str, float]:
        """Fraction of the position space each node owns.

        An entry owns the arc after its predecessor up to and including itself.
        """
        snap = self._snap
        out: Dict[str, float] = {}
        n = len(snap.positions)
        for i, pos in enumerate(snap.positions):
            if n == 1:
                arc = RING_SIZE
            else:
                arc = (pos - snap.positions[i - 1]) % RING_SIZE
            name = self._node_to_str(snap.owners[i])
            out[name] = out.get(name, 0.0) + arc / RING_SIZE
        return out

    def stats(self) -> Dict[str, int]:
        snap = self._snap
        names = {self._node_to_str(n) for n in snap.owners}
        return {"nodes": len(names), "tokens": len(snap.positions), "replicas": self._replicas}

    def clone(self) -> "ConsistentHash[T]":
        """Independent ring with the same entries, for before/after comparison."""
        other: ConsistentHash[T] = ConsistentHash(self._replicas, (),
                                                  node_to_str=self._node_to_str,
                                                  hash_fn=self._hash_fn)
        other._snap = _Snapshot(dict(self._snap.circle))
        return other

    def __repr__(self) -> str:
        s = self.stats()
        return f"ConsistentHash(replicas={s['replicas']}, nodes={s['nodes']}, tokens={s['tokens']})"
