"""Shared test fixtures."""

import copy
import random

import pytest

import nodal_core


# 200x200 square lattice at spacing 50: node candidates form a 3x3 block
SMALL_SQUARE_CONFIG = {
    'seed': 7,
    'width': 200,
    'height': 200,
    'grid': {'family': 'square', 'spacing': 50, 'chaos': 0},
    'nodes': {'count': 4, 'size': 10, 'padding': 40, 'chaos': 30},
    'connections': {'count': 3, 'mode': 'pairwise', 'pair_order': 'coverage'},
    'animation': {'mode': 'stream', 'behavior': 'mirror', 'speed': 50},
}

TRI_CONFIG = {
    'seed': 11,
    'width': 640,
    'height': 400,
    'grid': {'family': 'triangular', 'spacing': 40, 'chaos': 40},
    'nodes': {'count': 6, 'size': 8, 'padding': 40},
    'connections': {'count': 6},
}


@pytest.fixture
def two_chains():
    """0-1-2 and 3-4 as two separate visible chains."""
    return {
        'points': [(0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (10.0, 0.0), (11.0, 0.0)],
        'neighbors': [[1], [0, 2], [1], [4], [3]],
        'visible': [True] * 5,
    }


@pytest.fixture
def small_config():
    return copy.deepcopy(SMALL_SQUARE_CONFIG)


@pytest.fixture
def square_lattice():
    lattice = nodal_core.build_lattice(200, 200, 'square', 50)
    return nodal_core.shape_boundary(lattice, chaos=0, rng=random.Random(1))


@pytest.fixture
def tri_lattice():
    lattice = nodal_core.build_lattice(640, 400, 'triangular', 40)
    return nodal_core.shape_boundary(lattice, chaos=40, rng=random.Random(5))


@pytest.fixture
def small_scene():
    return nodal_core.generate_scene(config=SMALL_SQUARE_CONFIG)


@pytest.fixture
def tri_scene():
    return nodal_core.generate_scene(config=TRI_CONFIG)
