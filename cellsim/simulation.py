"""
Cell simulation kernel.

Main simulation class that owns the interaction graph, the random source,
and the force model, and advances the world one tick at a time.
"""

import numpy as np
import os
import time
from typing import Callable, Dict, List, Optional, Tuple
from pathlib import Path

from .cell import Cell, ConnectionDelta, ConnectionState, Delta, Particle
from .data_types import SimulationConfig, RewardScheme
from .forces import ForceModel, hooke_coefficient
from .graph import CellGraph, divide_cell
from .loader import load_simulation_config
from .rng import make_rng, make_seed, random_point_in_area
from .toroid import wrapped_distance
from .constants import TICK_TIME_WINDOW, TICK_SUMMARY_INTERVAL

# Tick phases in pipeline order (keys of the timing breakdown)
PHASES = ('spawn', 'decide', 'propagate', 'physics', 'division', 'death', 'sever', 'reward')

NEUTRAL_CONNECTION = ConnectionDelta()


class CellSimulation:
    """
    Evolving cell population on a toroidal area.

    TICK PIPELINE (each phase completes before the next begins):

        1. Spawn:     maybe insert one fresh random cell
        2. Decide:    every cell computes its Delta from a graph snapshot
        3. Propagate: write each cell's connection decisions onto its edges
        4. Physics:   springs along edges, repulsion between pairs, integrate
        5. Division:  dividing cells split into parent + mutated child
        6. Death:     dying (or zero-energy) cells are removed with their edges
        7. Sever:     edges where either direction asked to sever are removed
        8. Reward:    surviving cells gain energy

    Every phase that mutates the graph walks a list of ids materialized
    before the first mutation.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        seed: Optional[int] = None,
        rng=None,
        verbose: bool = True
    ):
        """
        Args:
            config: Simulation configuration (defaults from constants.py)
            seed: Run seed; overrides config.seed
            rng: Random source (numpy Generator or compatible); overrides seed
            verbose: Print initialization line
        """
        self.config: SimulationConfig = config if config is not None else SimulationConfig()
        if seed is None:
            seed = self.config.seed if self.config.seed is not None else 0
        self.seed = seed
        self.rng = rng if rng is not None else make_rng(make_seed(seed, "simulation"))

        self.graph = CellGraph()
        self.forces = ForceModel(self.config.physics, self.config.area)
        self.tick_count: int = 0

        # Performance metrics
        self._tick_times: List[float] = []
        self._tick_time_sum: float = 0.0
        self._tick_time_window: int = TICK_TIME_WINDOW
        self._phase_times: Dict[str, List[float]] = {phase: [] for phase in PHASES}

        # Population telemetry
        self._telemetry: Dict = {
            'spawned_total': 0,
            'births_total': 0,
            'deaths_total': 0,
            'severed_total': 0,
            'births_this_tick': 0,
            'deaths_this_tick': 0,
            'severed_this_tick': 0,
        }

        if verbose:
            print(f"[OK] Simulation initialized: seed={self.seed}, "
                  f"area={self.config.area.size.tolist()}, "
                  f"spawn_probability={self.config.spawn_probability}")

    @classmethod
    def from_yaml(cls, config_path: Path, schema_dir: Optional[Path] = None, **kwargs) -> 'CellSimulation':
        """Build a simulation from a YAML config file."""
        print(f"Loading config {config_path}...")
        return cls(load_simulation_config(Path(config_path), schema_dir), **kwargs)

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def new_cell(self, position: np.ndarray) -> Cell:
        """Fresh random cell at position (full initial energy, random brain)."""
        cfg = self.config
        particle = Particle(position=position, mass=cfg.physics.inertia)
        return Cell.new_random(self.rng, particle, cfg.metabolism, cfg.physics, cfg.area, cfg.genome)

    def add_cell(self, position: np.ndarray) -> int:
        return self.graph.add_cell(self.new_cell(position))

    def _spawn(self):
        if self.rng.random() < self.config.spawn_probability:
            area = self.config.area
            self.add_cell(random_point_in_area(self.rng, area.center, area.half_extent))
            self._telemetry['spawned_total'] += 1

    # ------------------------------------------------------------------
    # Decide / propagate
    # ------------------------------------------------------------------

    def _connection_length(self, a: int, b: int) -> float:
        return wrapped_distance(self.graph.cell(a).position, self.graph.cell(b).position,
                                self.config.area.size)

    def _decide(self) -> Dict[int, Tuple[List[int], List[int]]]:
        """
        Compute every cell's Delta from the current graph.

        Returns:
            node_id -> (out-neighbour ids, in-neighbour ids) in the order the
            Delta's connection lists were produced
        """
        order = {}
        for node_id in self.graph.node_ids():
            out_edges = self.graph.out_edges(node_id)
            in_edges = self.graph.in_edges(node_id)

            # Outgoing edge: the target's decision (backward) is what this cell receives
            out_states = [ConnectionState(conn.backward.signal, self._connection_length(node_id, t))
                          for t, conn in out_edges]
            in_states = [ConnectionState(conn.forward.signal, self._connection_length(s, node_id))
                         for s, conn in in_edges]

            container = self.graph.container(node_id)
            cell = container.cell
            container.prev_delta = container.delta
            container.delta = cell.cycle(cell.create_state(out_states, in_states))
            order[node_id] = ([t for t, _ in out_edges], [s for s, _ in in_edges])
        return order

    def _propagate(self, order: Dict[int, Tuple[List[int], List[int]]]):
        for node_id, (out_ids, in_ids) in order.items():
            delta = self.graph.container(node_id).delta
            out_deltas = delta.out_connections if delta is not None else []
            in_deltas = delta.in_connections if delta is not None else []
            for k, target in enumerate(out_ids):
                self.graph.connection(node_id, target).forward = (
                    out_deltas[k] if k < len(out_deltas) else NEUTRAL_CONNECTION)
            for k, source in enumerate(in_ids):
                self.graph.connection(source, node_id).backward = (
                    in_deltas[k] if k < len(in_deltas) else NEUTRAL_CONNECTION)

    # ------------------------------------------------------------------
    # Physics
    # ------------------------------------------------------------------

    def _physics(self):
        ids = self.graph.node_ids()
        if not ids:
            self.forces.accumulate([], np.empty((0, 2)), np.empty(0), [])
            return
        row_of = {node_id: row for row, node_id in enumerate(ids)}
        positions = self.graph.positions()
        repulsions = np.empty(len(ids), dtype=np.float64)
        for row, node_id in enumerate(ids):
            delta = self.graph.container(node_id).delta
            repulsions[row] = delta.repulsion if delta is not None else Delta().repulsion

        physics = self.config.physics
        springs = [(row_of[u], row_of[v], hooke_coefficient(conn.forward.elasticity, conn.backward.elasticity, physics))
                   for u, v, conn in self.graph.edges()]

        forces = self.forces.accumulate(ids, positions, repulsions, springs)
        for row, node_id in enumerate(ids):
            cell = self.graph.cell(node_id)
            cell.particle.force += forces[row]
            cell.update_physics()

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------

    def _divide(self) -> int:
        births = 0
        for node_id in self.graph.node_ids():
            container = self.graph.container(node_id)
            delta = container.delta
            # Cells removed in the death phase do not divide
            if delta is None or not delta.divide or delta.die or container.cell.energy == 0:
                continue
            divide_cell(self.graph, node_id, self.rng)
            births += 1
        return births

    def _kill(self) -> int:
        deaths = 0
        for node_id in self.graph.node_ids():
            container = self.graph.container(node_id)
            if (container.delta is not None and container.delta.die) or container.cell.energy == 0:
                self.graph.remove_cell(node_id)
                deaths += 1
        return deaths

    def _sever(self) -> int:
        severed = 0
        for u, v, conn in self.graph.edges():
            if conn.severed and self.graph.sever(u, v):
                severed += 1
        return severed

    def _reward(self):
        reward = self.config.reward
        for node_id in self.graph.node_ids():
            cell = self.graph.cell(node_id)
            if reward.scheme == RewardScheme.CONNECTIONS:
                gain = reward.connection_factor * self.graph.degree(node_id)
            else:
                dist_sq = self.forces.take_closest_distance_sq(node_id)
                if dist_sq is None:
                    continue
                gain = reward.distance_factor * dist_sq
            gain = int(min(reward.cap, gain))
            if gain > 0:
                cell.set_energy(cell.energy + gain)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def _timed(self, phase: str, fn: Callable, *args):
        start = time.perf_counter()
        result = fn(*args)
        self._phase_times[phase].append(time.perf_counter() - start)
        return result

    def tick(self):
        """Advance the simulation by one tick (see class docstring for the pipeline)."""
        start_time = time.perf_counter()

        self._timed('spawn', self._spawn)
        order = self._timed('decide', self._decide)
        self._timed('propagate', self._propagate, order)
        self._timed('physics', self._physics)
        births = self._timed('division', self._divide)
        deaths = self._timed('death', self._kill)
        severed = self._timed('sever', self._sever)
        self._timed('reward', self._reward)

        t = self._telemetry
        t['births_this_tick'] = births
        t['deaths_this_tick'] = deaths
        t['severed_this_tick'] = severed
        t['births_total'] += births
        t['deaths_total'] += deaths
        t['severed_total'] += severed

        self.tick_count += 1

        elapsed = time.perf_counter() - start_time
        self._record_tick_time(elapsed)

        # Debug invariant check (zero perf impact when env var not set)
        if os.getenv('SIM_DEBUG_INVARIANTS') == '1':
            self._check_invariants()

    def _check_invariants(self):
        for u, v, _ in self.graph.edges():
            assert u in self.graph and v in self.graph, f"Dangling edge {u} -> {v}"
        for node_id, cell in self.graph.cells():
            assert cell.energy >= 0, f"Negative energy on node {node_id}"

    def run(
        self,
        ticks: int,
        should_stop: Optional[Callable[[], bool]] = None,
        summary_interval: Optional[int] = TICK_SUMMARY_INTERVAL
    ) -> int:
        """
        Run up to `ticks` ticks, checking should_stop() between ticks.

        Returns:
            Number of ticks executed
        """
        executed = 0
        for _ in range(ticks):
            if should_stop is not None and should_stop():
                break
            self.tick()
            executed += 1
            if summary_interval and self.tick_count % summary_interval == 0:
                self.print_tick_summary()
        return executed

    # ------------------------------------------------------------------
    # Read-only views and stats
    # ------------------------------------------------------------------

    def get_render_view(self) -> dict:
        """
        Positions, energies and edge endpoints for a renderer.

        Returns:
            Dict with 'ids', 'positions' (N, 2), 'energies' (N,), and
            'edges' as (source_row, target_row) pairs
        """
        ids = self.graph.node_ids()
        row_of = {node_id: row for row, node_id in enumerate(ids)}
        return {
            'ids': ids,
            'positions': self.graph.positions(),
            'energies': np.array([self.graph.cell(n).energy for n in ids], dtype=np.int64),
            'edges': [(row_of[u], row_of[v]) for u, v, _ in self.graph.edges()],
        }

    def get_tick_stats(self) -> dict:
        """
        Get current tick timing statistics.

        Returns:
            Dict with tick_count, avg_tick_time_ms, last_tick_time_ms
        """
        if not self._tick_times:
            return {
                'tick_count': self.tick_count,
                'avg_tick_time_ms': 0.0,
                'last_tick_time_ms': 0.0
            }

        avg_time = self._tick_time_sum / len(self._tick_times)
        last_time = self._tick_times[-1]

        return {
            'tick_count': self.tick_count,
            'avg_tick_time_ms': avg_time * 1000.0,
            'last_tick_time_ms': last_time * 1000.0
        }

    def get_telemetry(self) -> dict:
        return dict(self._telemetry)

    def _record_tick_time(self, elapsed: float):
        """
        Record tick timing for rolling average.

        Args:
            elapsed: Tick time in seconds
        """
        self._tick_times.append(elapsed)
        self._tick_time_sum += elapsed

        # Maintain rolling window
        if len(self._tick_times) > self._tick_time_window:
            removed = self._tick_times.pop(0)
            self._tick_time_sum -= removed

        for times in self._phase_times.values():
            if len(times) > self._tick_time_window:
                times.pop(0)

    def get_snapshot(self) -> dict:
        """
        Get complete simulation state snapshot.

        Returns:
            Dict with tick_count, node/edge counts, cells, edges, timing
        """
        return {
            'tick_count': self.tick_count,
            'cell_count': len(self.graph),
            'edge_count': self.graph.edge_count(),
            'cells': {node_id: cell.to_dict() for node_id, cell in self.graph.cells()},
            'edges': [[u, v] for u, v, _ in self.graph.edges()],
            'timing': self.get_tick_stats()
        }

    def print_tick_summary(self):
        """Print tick summary to console (lightweight monitoring)"""
        stats = self.get_tick_stats()
        print(f"Tick {stats['tick_count']:5d} | "
              f"Avg: {stats['avg_tick_time_ms']:6.3f} ms | "
              f"Last: {stats['last_tick_time_ms']:6.3f} ms | "
              f"Cells: {len(self.graph)} | "
              f"Edges: {self.graph.edge_count()}")

    def print_perf_breakdown(self, every: int = 200):
        """
        Print per-phase timing breakdown every N ticks.

        Args:
            every: Print interval in ticks (default 200)
        """
        if self.tick_count == 0 or self.tick_count % every != 0:
            return

        print(f"\n[Perf Breakdown] Tick {self.tick_count} ({len(self.graph)} cells)")
        total = 0.0
        for phase in PHASES:
            times = self._phase_times[phase]
            avg = sum(times) / len(times) * 1000.0 if times else 0.0
            total += avg
            print(f"  {phase.capitalize() + ':':<13}{avg:6.3f} ms")

        t = self._telemetry
        print(f"  [Population] spawned={t['spawned_total']} births={t['births_total']} "
              f"deaths={t['deaths_total']} severed={t['severed_total']}")
        print(f"  Total:       {total:6.3f} ms")
