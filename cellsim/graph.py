"""
Interaction graph: cells as nodes, bidirectional connection state on edges.

Backed by a networkx.DiGraph. Node ids come from a monotonically increasing
counter and are never reused, so an id taken before a node is removed can
never silently refer to a different cell later in the same tick.

Each directed edge (u -> v) stores an ordered pair of ConnectionDelta:
    forward:  u's decision about the connection, consumed by v
    backward: v's decision about the connection, consumed by u

Removing a node drops its incident edges. All enumeration methods return
materialized lists so callers can mutate the graph while walking them.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple

import networkx as nx
import numpy as np

from .cell import Cell, ConnectionDelta, Delta


class NodeNotFoundError(LookupError):
    """Raised when a node id no longer exists in the graph"""
    pass


@dataclass
class CellContainer:
    """Node payload"""
    cell: Cell
    delta: Optional[Delta] = None       # Current tick's decision
    prev_delta: Optional[Delta] = None  # Previous tick's decision


@dataclass
class Connection:
    """Edge payload: one ConnectionDelta per direction"""
    forward: ConnectionDelta = field(default_factory=ConnectionDelta)
    backward: ConnectionDelta = field(default_factory=ConnectionDelta)

    @property
    def severed(self) -> bool:
        return self.forward.sever or self.backward.sever


class CellGraph:
    """Mutable directed graph of cells with stable node ids."""

    def __init__(self):
        self._g = nx.DiGraph()
        self._next_id = 0

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_cell(self, cell: Cell) -> int:
        node_id = self._next_id
        self._next_id += 1
        self._g.add_node(node_id, container=CellContainer(cell))
        return node_id

    def __contains__(self, node_id: int) -> bool:
        return self._g.has_node(node_id)

    def __len__(self) -> int:
        return self._g.number_of_nodes()

    def node_ids(self) -> List[int]:
        """Snapshot of live node ids in insertion order."""
        return list(self._g.nodes)

    def container(self, node_id: int) -> CellContainer:
        try:
            return self._g.nodes[node_id]['container']
        except KeyError:
            raise NodeNotFoundError(f"Node {node_id} is not in the graph")

    def cell(self, node_id: int) -> Cell:
        return self.container(node_id).cell

    def cells(self) -> Iterator[Tuple[int, Cell]]:
        for node_id in self.node_ids():
            yield node_id, self.cell(node_id)

    def remove_cell(self, node_id: int):
        """Remove a node and every incident edge."""
        if not self._g.has_node(node_id):
            raise NodeNotFoundError(f"Node {node_id} is not in the graph")
        self._g.remove_node(node_id)

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def add_connection(self, source: int, target: int, connection: Optional[Connection] = None) -> Connection:
        for node_id in (source, target):
            if not self._g.has_node(node_id):
                raise NodeNotFoundError(f"Node {node_id} is not in the graph")
        connection = connection if connection is not None else Connection()
        self._g.add_edge(source, target, connection=connection)
        return connection

    def connection(self, source: int, target: int) -> Connection:
        try:
            return self._g.edges[source, target]['connection']
        except KeyError:
            raise NodeNotFoundError(f"Edge {source} -> {target} is not in the graph")

    def has_connection(self, source: int, target: int) -> bool:
        return self._g.has_edge(source, target)

    def out_edges(self, node_id: int) -> List[Tuple[int, Connection]]:
        """(target, connection) for every edge leaving node_id."""
        if not self._g.has_node(node_id):
            raise NodeNotFoundError(f"Node {node_id} is not in the graph")
        return [(v, data['connection']) for _, v, data in self._g.out_edges(node_id, data=True)]

    def in_edges(self, node_id: int) -> List[Tuple[int, Connection]]:
        """(source, connection) for every edge entering node_id."""
        if not self._g.has_node(node_id):
            raise NodeNotFoundError(f"Node {node_id} is not in the graph")
        return [(u, data['connection']) for u, _, data in self._g.in_edges(node_id, data=True)]

    def out_neighbors(self, node_id: int) -> List[int]:
        return [v for v, _ in self.out_edges(node_id)]

    def in_neighbors(self, node_id: int) -> List[int]:
        return [u for u, _ in self.in_edges(node_id)]

    def degree(self, node_id: int) -> int:
        return self._g.in_degree(node_id) + self._g.out_degree(node_id)

    def edges(self) -> List[Tuple[int, int, Connection]]:
        """Snapshot of (source, target, connection) for every edge."""
        return [(u, v, data['connection']) for u, v, data in self._g.edges(data=True)]

    def edge_count(self) -> int:
        return self._g.number_of_edges()

    def sever(self, source: int, target: int) -> bool:
        """
        Remove an edge if present.

        Returns:
            True if an edge was removed, False if it was already absent
        """
        if self._g.has_edge(source, target):
            self._g.remove_edge(source, target)
            return True
        return False

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def positions(self) -> np.ndarray:
        """(N, 2) positions in node_ids() order."""
        ids = self.node_ids()
        if not ids:
            return np.empty((0, 2), dtype=np.float64)
        return np.array([self.cell(n).position for n in ids], dtype=np.float64)


def divide_cell(graph: CellGraph, node_id: int, rng) -> int:
    """
    Split a cell into itself and a mutated, shifted sibling.

    Energy is halved between parent and child. The child copies the parent's
    out- and in-neighbours with fresh default connections, then gets linked
    to the parent by a parent -> child edge.

    Returns:
        Node id of the child
    """
    parent = graph.cell(node_id)
    out_neighbors = graph.out_neighbors(node_id)
    in_neighbors = graph.in_neighbors(node_id)

    child_energy = parent.energy - parent.energy // 2
    parent.set_energy(parent.energy // 2)

    child = Cell(child_energy, parent.particle.copy(), parent.brain.clone(),
                 parent.metabolism, parent.physics, parent.area)
    child.mutate(rng)
    child.set_energy(child_energy)
    child.random_shift(rng)

    child_id = graph.add_cell(child)
    for target in out_neighbors:
        graph.add_connection(child_id, target)
    for source in in_neighbors:
        graph.add_connection(source, child_id)
    graph.add_connection(node_id, child_id)

    return child_id
