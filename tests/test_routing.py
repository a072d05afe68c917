"""Tests for path finding, smoothing and connection routing."""

import random

import pytest
from shapely.geometry import Point

from nodal_core import (
    build_lattice,
    find_path,
    path_length,
    point_on_path,
    route_circuits,
    route_connections,
    route_pairwise,
    select_pairs,
    smooth_path,
    truncate_path,
)


def _node(vertex, x=0.0, y=0.0):
    return {'vertex': vertex, 'x': x, 'y': y, 'size': 10}


def _adjacent(lattice, path):
    return all(b in lattice['neighbors'][a] for a, b in zip(path, path[1:]))


class TestFindPath:
    def test_simple(self, two_chains):
        assert find_path(two_chains, 0, 2) == [0, 1, 2]

    def test_same_vertex(self, two_chains):
        assert find_path(two_chains, 1, 1) == [1]

    def test_unreachable(self, two_chains):
        assert find_path(two_chains, 0, 3) is None

    def test_invisible_end(self, two_chains):
        two_chains['visible'][2] = False
        assert find_path(two_chains, 0, 2) is None

    def test_square_hops_are_manhattan(self, square_lattice):
        index = square_lattice['index']
        path = find_path(square_lattice, index[(3, 3)], index[(5, 6)])
        assert len(path) == 2 + 3 + 1
        assert _adjacent(square_lattice, path)

    @pytest.mark.parametrize('a, b', [((2, 2), (6, 5)), ((8, 1), (3, 7)), ((4, 4), (4, 9))])
    def test_triangular_hops_are_axial(self, a, b):
        lattice = build_lattice(640, 400, 'triangular', 40)
        index = lattice['index']
        dq = b[0] - a[0]
        dr = b[1] - a[1]
        hops = (abs(dq) + abs(dr) + abs(dq + dr)) // 2
        path = find_path(lattice, index[a], index[b])
        assert len(path) == hops + 1
        assert path[0] == index[a] and path[-1] == index[b]


class TestGeometry:
    @pytest.mark.parametrize('resolution', [1, 4, 7])
    @pytest.mark.parametrize('count', [3, 4, 6, 9])
    def test_smooth_keeps_end_points(self, count, resolution):
        points = [(i * 10.0, (i % 2) * 10.0) for i in range(count)]
        smoothed = smooth_path(points, resolution=resolution)
        assert len(smoothed) == (count - 1) * resolution + 1
        assert smoothed[0] == pytest.approx(points[0])
        assert smoothed[-1] == points[-1]
        for i, p in enumerate(points):
            assert smoothed[i * resolution] == pytest.approx(p)

    def test_point_on_path_moves_forward(self, tri_scene):
        assert tri_scene['connections']
        for conn in tri_scene['connections']:
            line = conn['line']
            last = -1.0
            for k in range(201):
                x, y = point_on_path(conn['points'], k / 200, line)
                along = line.project(Point(x, y))
                assert along >= last - 1e-6
                last = along
            assert last == pytest.approx(conn['length'])

    def test_smooth_straight_line_stays_straight(self):
        smoothed = smooth_path([(0, 5), (10, 5), (20, 5)], resolution=5)
        assert all(y == pytest.approx(5) for _, y in smoothed)

    def test_short_paths_unchanged(self):
        assert smooth_path([(0, 0), (1, 1)]) == [(0, 0), (1, 1)]
        assert smooth_path([]) == []

    def test_point_on_path(self):
        points = [(0, 0), (10, 0)]
        assert point_on_path(points, 0.25) == pytest.approx((2.5, 0))
        assert point_on_path(points, -1) == (0, 0)
        assert point_on_path(points, 2) == (10, 0)
        assert point_on_path([], 0.5) is None
        assert point_on_path([(3, 4)], 0.5) == (3, 4)

    def test_truncate_path(self):
        points = [(0, 0), (10, 0), (10, 10)]
        assert truncate_path(points, 0.5) == [(0, 0), (10, 0)]
        assert truncate_path(points, 0) == [(0, 0)]
        assert truncate_path(points, 1) == points
        assert truncate_path([], 0.5) == []

    def test_path_length(self):
        assert path_length([(0, 0), (10, 0), (10, 10)]) == pytest.approx(20)
        assert path_length([(1, 1)]) == 0.0


class TestSelectPairs:
    def test_shortest_first(self):
        nodes = [_node(i, x) for i, x in enumerate([0, 1, 3, 7])]
        assert select_pairs(nodes, 2, 'shortest') == [(0, 1), (1, 2)]

    def test_coverage_touches_every_node(self):
        nodes = [_node(i, i * 10.0) for i in range(4)]
        for seed in range(10):
            pairs = select_pairs(nodes, 3, 'coverage', random.Random(seed))
            assert len(pairs) == 3
            assert {n for pair in pairs for n in pair} == {0, 1, 2, 3}

    def test_no_duplicates_when_count_exceeds_pairs(self):
        nodes = [_node(i) for i in range(3)]
        pairs = select_pairs(nodes, 10, 'coverage', random.Random(1))
        assert sorted(pairs) == [(0, 1), (0, 2), (1, 2)]

    def test_too_few_nodes(self):
        assert select_pairs([_node(0)], 5) == []
        assert select_pairs([], 5) == []


class TestRouting:
    def test_pairwise_skips_unreachable(self, two_chains):
        nodes = [_node(0), _node(2), _node(3)]
        conns = route_pairwise(two_chains, nodes, 3, smooth=False,
                               rng=random.Random(1))
        assert len(conns) == 1
        assert conns[0]['index'] == 0
        assert conns[0]['stops'] == [0, 1]
        assert conns[0]['path'] == [0, 1, 2]
        assert conns[0]['length'] == pytest.approx(2.0)

    def test_circuits_with_broken_leg_are_dropped(self, two_chains):
        nodes = [_node(0), _node(2), _node(3)]
        conns = route_circuits(two_chains, nodes, 4, min_stops=3, max_stops=3,
                               rng=random.Random(1))
        assert conns == []

    def test_circuits_visit_their_stops(self, small_scene):
        lattice = small_scene['lattice']
        nodes = small_scene['nodes']
        conns = route_circuits(lattice, nodes, 2, min_stops=3, max_stops=3,
                               smooth=False, rng=random.Random(2))
        assert len(conns) == 2
        for conn in conns:
            assert len(conn['stops']) == 3
            assert len(set(conn['stops'])) == 3
            assert conn['path'][0] == nodes[conn['stops'][0]]['vertex']
            assert conn['path'][-1] == nodes[conn['stops'][-1]]['vertex']
            for stop in conn['stops']:
                assert nodes[stop]['vertex'] in conn['path']
            assert _adjacent(lattice, conn['path'])

    def test_circuit_needs_two_nodes(self, square_lattice):
        assert route_circuits(square_lattice, [_node(40)], 3) == []

    def test_route_connections_dispatch(self, small_scene):
        lattice = small_scene['lattice']
        nodes = small_scene['nodes']
        circuits = route_connections(lattice, nodes,
                                     {'mode': 'circuit', 'count': 2, 'smooth': False},
                                     random.Random(1))
        assert all(len(c['stops']) >= 3 for c in circuits)
        assert route_connections(lattice, nodes, {'count': 0}) == []

    def test_scene_connections_cover_nodes(self, small_scene):
        assert len(small_scene['nodes']) == 4
        conns = small_scene['connections']
        assert len(conns) == 3
        assert {s for c in conns for s in c['stops']} == {0, 1, 2, 3}
        for conn in conns:
            assert _adjacent(small_scene['lattice'], conn['path'])
            assert conn['points'][0] == pytest.approx(
                small_scene['lattice']['points'][conn['path'][0]])
