"""
Headless population run.

Runs the simulation from data/simulation.yaml for several seeds and reports
population size, edge count and tick timing per seed.
"""

import sys
import time
from pathlib import Path

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from cellsim.simulation import CellSimulation
from cellsim.loader import DEFAULT_SCHEMA_DIR


def run_population(seed: int, ticks: int) -> dict:
    """
    Run one seeded population.

    Args:
        seed: Run seed
        ticks: Number of ticks

    Returns:
        Dict with final cell/edge counts, telemetry and p50/p90 tick time
    """
    config_path = Path(__file__).parent.parent / "data" / "simulation.yaml"
    sim = CellSimulation.from_yaml(config_path, DEFAULT_SCHEMA_DIR, seed=seed, verbose=False)

    times_ms = []
    for _ in range(ticks):
        start = time.perf_counter()
        sim.tick()
        times_ms.append((time.perf_counter() - start) * 1000.0)
        sim.print_perf_breakdown(every=500)

    times_ms = np.array(times_ms)
    return {
        'seed': seed,
        'cells': len(sim.graph),
        'edges': sim.graph.edge_count(),
        'telemetry': sim.get_telemetry(),
        'p50_ms': np.percentile(times_ms, 50),
        'p90_ms': np.percentile(times_ms, 90),
    }


def main():
    """Run several seeds and print a summary table."""
    print("=" * 80)
    print("Headless Cell Population Run")
    print("=" * 80)
    print()

    ticks = 2000
    results = []

    for seed in (1, 2, 3):
        print(f"[seed = {seed}]")
        result = run_population(seed, ticks)
        t = result['telemetry']
        print(f"  cells: {result['cells']}, edges: {result['edges']}")
        print(f"  spawned: {t['spawned_total']}, births: {t['births_total']}, deaths: {t['deaths_total']}")
        print(f"  p50: {result['p50_ms']:.3f}ms, p90: {result['p90_ms']:.3f}ms")
        results.append(result)
        print()

    print("=" * 80)
    print("| Seed | Cells | Edges | Births | Deaths | p50 (ms) |")
    print("|------|-------|-------|--------|--------|----------|")
    for r in results:
        t = r['telemetry']
        print(f"| {r['seed']:4d} | {r['cells']:5d} | {r['edges']:5d} | {t['births_total']:6d} | "
              f"{t['deaths_total']:6d} | {r['p50_ms']:8.3f} |")
    print()
    print("=" * 80)


if __name__ == '__main__':
    main()
