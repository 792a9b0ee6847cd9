"""
Interaction graph tests: node lifetime, edge bookkeeping, and division topology.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import numpy as np
import pytest

from cellsim.cell import Cell, ConnectionDelta, Particle
from cellsim.graph import CellGraph, Connection, NodeNotFoundError, divide_cell
from cellsim.rng import make_rng
from cellsim.toroid import wrapped_distance


def make_cell(rng, position=(0.0, 0.0)):
    return Cell.new_random(rng, Particle(position=position))


def test_ids_are_never_reused():
    rng = make_rng(20)
    graph = CellGraph()
    a = graph.add_cell(make_cell(rng))
    graph.remove_cell(a)
    b = graph.add_cell(make_cell(rng))
    assert b != a
    assert a not in graph
    with pytest.raises(NodeNotFoundError):
        graph.cell(a)


def test_remove_drops_incident_edges():
    rng = make_rng(21)
    graph = CellGraph()
    a, b, c = (graph.add_cell(make_cell(rng)) for _ in range(3))
    graph.add_connection(a, b)
    graph.add_connection(c, a)
    graph.add_connection(b, c)

    graph.remove_cell(a)

    assert graph.edge_count() == 1
    assert graph.has_connection(b, c)
    for u, v, _ in graph.edges():
        assert u in graph and v in graph


def test_remove_missing_node_raises():
    graph = CellGraph()
    with pytest.raises(NodeNotFoundError):
        graph.remove_cell(5)


def test_connect_requires_live_nodes():
    rng = make_rng(22)
    graph = CellGraph()
    a = graph.add_cell(make_cell(rng))
    with pytest.raises(NodeNotFoundError):
        graph.add_connection(a, 99)


def test_sever_is_idempotent():
    rng = make_rng(23)
    graph = CellGraph()
    a, b = (graph.add_cell(make_cell(rng)) for _ in range(2))
    graph.add_connection(a, b)

    assert graph.sever(a, b) is True
    assert graph.sever(a, b) is False
    assert graph.sever(b, a) is False
    assert graph.edge_count() == 0


def test_connection_severed_if_either_side_asks():
    conn = Connection()
    assert not conn.severed
    conn.backward = ConnectionDelta(sever=True)
    assert conn.severed


def test_degree_counts_both_directions():
    rng = make_rng(24)
    graph = CellGraph()
    a, b, c = (graph.add_cell(make_cell(rng)) for _ in range(3))
    graph.add_connection(a, b)
    graph.add_connection(c, a)
    assert graph.degree(a) == 2
    assert graph.out_neighbors(a) == [b]
    assert graph.in_neighbors(a) == [c]


def test_divide_copies_topology_and_links_parent():
    rng = make_rng(25)
    graph = CellGraph()
    n = graph.add_cell(make_cell(rng, position=(10.0, 10.0)))
    a, b, c, d = (graph.add_cell(make_cell(rng)) for _ in range(4))
    graph.add_connection(a, n)
    graph.add_connection(n, b)
    graph.add_connection(n, c)
    graph.add_connection(d, n)

    parent_energy = graph.cell(n).energy
    child = divide_cell(graph, n, rng)

    assert set(graph.out_neighbors(child)) == {b, c}
    assert set(graph.in_neighbors(child)) - {n} == {a, d}
    assert graph.has_connection(n, child)

    # Parent topology unchanged apart from the new child link
    assert set(graph.out_neighbors(n)) == {b, c, child}
    assert set(graph.in_neighbors(n)) == {a, d}

    # Fresh connections start neutral
    conn = graph.connection(child, b)
    assert conn.forward.elasticity == 0.5 and not conn.severed

    # Energy is split, none created
    assert graph.cell(n).energy + graph.cell(child).energy == parent_energy
    assert graph.cell(n).energy == parent_energy // 2


def test_divided_child_is_shifted():
    rng = make_rng(26)
    graph = CellGraph()
    n = graph.add_cell(make_cell(rng, position=(10.0, 10.0)))
    child = divide_cell(graph, n, rng)
    parent_cell = graph.cell(n)
    child_cell = graph.cell(child)
    d = wrapped_distance(parent_cell.position, child_cell.position, parent_cell.area.size)
    assert np.isclose(d, parent_cell.physics.division_shift)
    assert child_cell.brain is not parent_cell.brain


def test_positions_follow_node_order():
    rng = make_rng(27)
    graph = CellGraph()
    assert graph.positions().shape == (0, 2)
    graph.add_cell(make_cell(rng, position=(1.0, 2.0)))
    graph.add_cell(make_cell(rng, position=(3.0, 4.0)))
    assert np.allclose(graph.positions(), [[1.0, 2.0], [3.0, 4.0]])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
