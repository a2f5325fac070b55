import hashlib
import json
import logging

from ring_config import RingConfig
from rebalance import RebalancePlanner, moved_fraction


def request_signature(model_name: str, params: dict, prompt: str) -> str:
    payload = json.dumps({'m': model_name, 'p': params, 'q': prompt}, sort_keys=True)
    return hashlib.sha256(payload.encode()).hexdigest()


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    ring = RingConfig(replicas=160, seed=2025).build(['cache-a', 'cache-b', 'cache-c'])
    print('Ring:', ring)

    keys = [request_signature('llama3.1-8b', {'temp': 0.2}, f'Q-{i}') for i in range(2000)]

    # Snapshot ring BEFORE adding new node
    ring_before = ring.clone()
    ring.add('cache-d')

    planner = RebalancePlanner()
    plan = planner.plan_moved(keys, ring_before, ring)
    print('Moved stats:', planner.stats(plan))
    print(f"Moved fraction: {moved_fraction(keys, ring_before, ring):.2%}")
    print('Coverage:', {n: round(f, 3) for n, f in sorted(ring.coverage().items())})
    print('Preference list for Q-0:', ring.get_nodes(keys[0], count=2))

    ring.remove('cache-b')
    print('After removing cache-b:', ring)


if __name__ == '__main__':
    main()
