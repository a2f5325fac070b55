
"""Rebalancing utilities.

Plan owner changes for keys between two ring snapshots and summarize the churn.
"""
from __future__ import annotations

from typing import Iterable, Dict, Hashable, Tuple, Optional, Any
from collections import Counter
import logging

from consistent_hash_ring import ConsistentHash

log = logging.getLogger(__name__)

Plan = Dict[Hashable, Tuple[Optional[Any], Optional[Any]]]


class RebalancePlanner:
    def plan_moved(self, keys: Iterable[Hashable], ring_before: ConsistentHash, ring_after: ConsistentHash) -> Plan:
        """Return dict key -> (from_owner, to_owner) for keys whose owner changed."""
        moved = {}
        for k in keys:
            b = ring_before.get(k)
            a = ring_after.get(k)
            if b != a:
                moved[k] = (b, a)
        log.debug("planned moves=%d", len(moved))
        return moved

    def stats(self, plan: Plan) -> Dict[str, Any]:
        by_to = Counter([str(to) for (_, to) in plan.values() if to is not None])
        by_from = Counter([str(frm) for (frm, _) in plan.values() if frm is not None])
        return {
            "moved_count": len(plan),
            "by_to": dict(by_to),
            "by_from": dict(by_from),
        }


def moved_fraction(keys: Iterable[Hashable], ring_before: ConsistentHash, ring_after: ConsistentHash) -> float:
    keys = list(keys)
    if not keys:
        return 0.0
    return len(RebalancePlanner().plan_moved(keys, ring_before, ring_after)) / len(keys)
