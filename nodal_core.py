import drawsvg as draw
import random
import math
import copy
import json
import logging
from collections import deque
from pathlib import Path
from urllib.parse import quote, unquote
from shapely.geometry import Polygon, LineString, Point, box
from shapely.ops import unary_union, substring

log = logging.getLogger(__name__)


# ============================================================================
# CONFIGURATION
# ============================================================================

DEFAULT_CONFIG = {
    'seed': 0,
    'width': 1920,
    'height': 1080,
    'grid': {
        'family': 'triangular',   # 'triangular' | 'square'
        'spacing': 60,            # cell size in px
        'chaos': 30,              # 0-100: boundary irregularity / holes
        'direction': 90,          # degrees: elongation axis
        'elongation': 50,         # 0-100: stretch along the axis (1x-3x)
    },
    'nodes': {
        'count': 8,
        'bias': 'directional',    # 'directional' | 'axis' | 'random'
        'axis_angle': 45,         # degrees, 0 = right, 90 = down
        'chaos': 30,              # 0-100: blend toward random placement
        'size': 12,
        'padding': 60,            # keep nodes this far inside the canvas
        'style': 'circle',        # 'circle' | 'square'
        'visible': True,
    },
    'connections': {
        'count': 8,
        'mode': 'pairwise',       # 'pairwise' | 'circuit'
        'pair_order': 'coverage', # 'coverage' | 'shortest'
        'min_stops': 3,
        'max_stops': 6,
        'smooth': True,
        'resolution': 4,          # Catmull-Rom subdivisions per segment
        'thickness': 2,
        'style': 'solid',         # 'solid' | 'dashed'
        'dash_length': 8,
        'dash_gap': 6,
    },
    'animation': {
        'mode': 'stream',         # 'stream' | 'reveal' | 'pulse' | 'none'
        'behavior': 'mirror',     # 'mirror' | 'loop'
        'loop_ease': True,
        'speed': 50,              # 0-100
        'stream_length': 0.12,    # fraction of the path covered by the stream
        'trail_length': 15,       # stream segment count (smoothness)
        'glow_radius': 40,
        'glow_intensity': 60,     # 0-100, pulse mode
        'node_pulse': True,
        'playing': True,
    },
    'style': {
        'background': '#333333',
        'grid_color': '#ffffff',
        'grid_opacity': 0.4,
        'node_color': '#c8ff00',
        'node_stroke_weight': 2,
        'connection_color': '#c8ff00',
        'animation_color': '#c8ff00',
    },
}

CONFIG_RANGES = {
    ('grid', 'spacing'): (10, 400),
    ('grid', 'chaos'): (0, 100),
    ('grid', 'direction'): (0, 360),
    ('grid', 'elongation'): (0, 100),
    ('nodes', 'count'): (0, 200),
    ('nodes', 'axis_angle'): (0, 360),
    ('nodes', 'chaos'): (0, 100),
    ('nodes', 'size'): (1, 100),
    ('nodes', 'padding'): (0, 500),
    ('connections', 'count'): (0, 500),
    ('connections', 'min_stops'): (2, 12),
    ('connections', 'max_stops'): (2, 12),
    ('connections', 'resolution'): (1, 32),
    ('connections', 'thickness'): (0.1, 20),
    ('connections', 'dash_length'): (1, 100),
    ('connections', 'dash_gap'): (1, 100),
    ('animation', 'speed'): (0, 100),
    ('animation', 'stream_length'): (0.01, 1.0),
    ('animation', 'trail_length'): (1, 100),
    ('animation', 'glow_radius'): (0, 400),
    ('animation', 'glow_intensity'): (0, 100),
    ('style', 'grid_opacity'): (0.0, 1.0),
    ('style', 'node_stroke_weight'): (0.1, 20),
}

CONFIG_CHOICES = {
    ('grid', 'family'): ('triangular', 'square'),
    ('nodes', 'bias'): ('directional', 'axis', 'random'),
    ('nodes', 'style'): ('circle', 'square'),
    ('connections', 'mode'): ('pairwise', 'circuit'),
    ('connections', 'pair_order'): ('coverage', 'shortest'),
    ('connections', 'style'): ('solid', 'dashed'),
    ('animation', 'mode'): ('stream', 'reveal', 'pulse', 'none'),
    ('animation', 'behavior'): ('mirror', 'loop'),
}

# Names used by older saved configs
LEGACY_NAMES = {
    'isometric': 'triangular',
    'particle': 'stream',
    'linedraw': 'reveal',
    'glow': 'pulse',
}

# Camel-case keys written by older share links: (section, key) -> (section, key).
# A section of None is the top level.
LEGACY_KEYS = {
    (None, 'canvasWidth'): (None, 'width'),
    (None, 'canvasHeight'): (None, 'height'),
    (None, 'backgroundColor'): ('style', 'background'),
    ('grid', 'type'): ('grid', 'family'),
    ('grid', 'cellSize'): ('grid', 'spacing'),
    ('grid', 'color'): ('style', 'grid_color'),
    ('grid', 'opacity'): ('style', 'grid_opacity'),
    ('grid', 'shapeChaos'): ('grid', 'chaos'),
    ('grid', 'shapeDirection'): ('grid', 'direction'),
    ('grid', 'shapeElongation'): ('grid', 'elongation'),
    ('nodes', 'axisAngle'): ('nodes', 'axis_angle'),
    ('nodes', 'strokeColor'): ('style', 'node_color'),
    ('nodes', 'strokeWeight'): ('style', 'node_stroke_weight'),
    ('connections', 'color'): ('style', 'connection_color'),
    ('connections', 'dashLength'): ('connections', 'dash_length'),
    ('connections', 'dashGap'): ('connections', 'dash_gap'),
    ('animation', 'color'): ('style', 'animation_color'),
    ('animation', 'nodePulse'): ('animation', 'node_pulse'),
    ('animation', 'streamLength'): ('animation', 'stream_length'),
    ('animation', 'trailLength'): ('animation', 'trail_length'),
    ('animation', 'glowIntensity'): ('animation', 'glow_intensity'),
}

_INT_KEYS = {
    ('grid', 'spacing'), ('nodes', 'count'), ('connections', 'count'),
    ('connections', 'min_stops'), ('connections', 'max_stops'),
    ('connections', 'resolution'), ('animation', 'trail_length'),
}

_BOOL_KEYS = {
    ('nodes', 'visible'), ('connections', 'smooth'), ('animation', 'loop_ease'),
    ('animation', 'node_pulse'), ('animation', 'playing'),
}


def merge_config(overrides=None, base=None):
    """Deep-merge a partial config dict over the defaults.

    Returns a new dict; neither argument is modified. Unknown sections and
    keys are carried through untouched.
    """
    result = copy.deepcopy(base if base is not None else DEFAULT_CONFIG)
    if not overrides:
        return result
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key].update(copy.deepcopy(value))
        else:
            result[key] = copy.deepcopy(value)
    return result


def upgrade_legacy_keys(config):
    """Rename camel-case keys from older configs to their current place.

    A current key that is already set wins over its legacy spelling.
    Returns a new dict.
    """
    result = copy.deepcopy(config) if isinstance(config, dict) else {}
    moved = 0
    for (src_section, src_key), (dst_section, dst_key) in LEGACY_KEYS.items():
        src = result if src_section is None else result.get(src_section)
        if not isinstance(src, dict) or src_key not in src:
            continue
        value = src.pop(src_key)
        if dst_section is None:
            dst = result
        else:
            dst = result.setdefault(dst_section, {})
            if not isinstance(dst, dict):
                continue
        if dst_key not in dst:
            dst[dst_key] = value
            moved += 1
    if moved:
        log.info("Upgraded %d legacy config keys", moved)
    return result


def clamp_config(config):
    """Clamp numeric values into CONFIG_RANGES and repair enum values.

    Legacy keys and mode/family names are mapped to their current spelling;
    unknown choices fall back to the default. Returns a new dict.
    """
    result = merge_config(upgrade_legacy_keys(config))
    for section, defaults in DEFAULT_CONFIG.items():
        if isinstance(defaults, dict) and not isinstance(result.get(section), dict):
            result[section] = copy.deepcopy(defaults)
    for (section, key), (lo, hi) in CONFIG_RANGES.items():
        value = result[section].get(key)
        try:
            value = float(value)
        except (TypeError, ValueError):
            value = float(DEFAULT_CONFIG[section][key])
        if math.isnan(value):
            value = float(DEFAULT_CONFIG[section][key])
        value = float(max(lo, min(hi, value)))
        if (section, key) in _INT_KEYS:
            value = int(round(value))
        elif value.is_integer():
            value = int(value)
        result[section][key] = value

    for (section, key), choices in CONFIG_CHOICES.items():
        value = result[section].get(key)
        if isinstance(value, str):
            value = LEGACY_NAMES.get(value, value)
        if value not in choices:
            value = DEFAULT_CONFIG[section][key]
        result[section][key] = value

    for section, key in _BOOL_KEYS:
        value = result[section].get(key)
        if isinstance(value, str):
            value = value.strip().lower() in ('1', 'true', 'yes', 'on')
        result[section][key] = bool(value)

    conn = result['connections']
    if conn['max_stops'] < conn['min_stops']:
        conn['max_stops'] = conn['min_stops']

    for key in ('width', 'height'):
        try:
            result[key] = max(1, int(result[key]))
        except (TypeError, ValueError):
            result[key] = DEFAULT_CONFIG[key]
    try:
        result['seed'] = int(result['seed'])
    except (TypeError, ValueError):
        result['seed'] = DEFAULT_CONFIG['seed']
    return result


def config_to_hash(config):
    """Encode a config as a percent-encoded JSON string (URL hash form)."""
    return quote(json.dumps(config, sort_keys=True, separators=(',', ':')))


def config_from_hash(text):
    """Decode a URL-hash config. Returns a clamped config, or None if malformed."""
    if not text:
        return None
    if text.startswith('#'):
        text = text[1:]
    try:
        data = json.loads(unquote(text))
    except ValueError:
        log.warning("Ignoring malformed config hash (%d chars)", len(text))
        return None
    if not isinstance(data, dict):
        log.warning("Ignoring config hash that is not an object")
        return None
    return clamp_config(data)


def load_config_file(path):
    with open(path, encoding='utf-8') as f:
        return clamp_config(json.load(f))


def save_config_file(config, path):
    Path(path).write_text(json.dumps(config, indent=2, sort_keys=True),
                          encoding='utf-8')


# ============================================================================
# NOISE
# ============================================================================

_GRADIENTS = [(1, 1), (-1, 1), (1, -1), (-1, -1),
              (1, 0), (-1, 0), (0, 1), (0, -1)]


def build_permutation(rng):
    perm = list(range(256))
    rng.shuffle(perm)
    return perm + perm


def _fade(t):
    return t * t * t * (t * (t * 6 - 15) + 10)


def _lerp(a, b, t):
    return a + (b - a) * t


def _grad(h, dx, dy):
    g = _GRADIENTS[h & 7]
    return g[0] * dx + g[1] * dy


def perlin_2d(perm, x, y):
    """Classic 2D gradient noise. Roughly in [-1, 1], exactly 0 on integer points."""
    xi = math.floor(x)
    yi = math.floor(y)
    xf = x - xi
    yf = y - yi
    X = xi & 255
    Y = yi & 255

    aa = perm[perm[X] + Y]
    ab = perm[perm[X] + Y + 1]
    ba = perm[perm[X + 1] + Y]
    bb = perm[perm[X + 1] + Y + 1]

    u = _fade(xf)
    v = _fade(yf)
    x1 = _lerp(_grad(aa, xf, yf), _grad(ba, xf - 1, yf), u)
    x2 = _lerp(_grad(ab, xf, yf - 1), _grad(bb, xf - 1, yf - 1), u)
    return _lerp(x1, x2, v)


def fractal_noise(perm, x, y, octaves=3, persistence=0.5):
    total = 0.0
    amplitude = 1.0
    frequency = 1.0
    norm = 0.0
    for _ in range(octaves):
        total += perlin_2d(perm, x * frequency, y * frequency) * amplitude
        norm += amplitude
        amplitude *= persistence
        frequency *= 2.0
    return max(-1.0, min(1.0, total / norm))


# ============================================================================
# LATTICE
# ============================================================================

SQRT3 = math.sqrt(3)

# Fixed enumeration order; BFS tie-breaking depends on it.
LATTICE_DIRECTIONS = {
    'triangular': [(1, 0), (-1, 0), (0, 1), (0, -1), (1, -1), (-1, 1)],
    'square': [(1, 0), (-1, 0), (0, 1), (0, -1)],
}

LATTICE_MARGINS = {
    'triangular': 4,
    'square': 2,
}

# Cells with a centroid beyond this many spacings outside the canvas never show
OUTSIDE_MARGIN_CELLS = 2


def normalize_family(family):
    family = LEGACY_NAMES.get(family, family)
    if family not in LATTICE_DIRECTIONS:
        raise ValueError("Unknown lattice family: {!r}".format(family))
    return family


def _empty_lattice(width, height, family, spacing):
    return {
        'family': family,
        'spacing': spacing,
        'width': width,
        'height': height,
        'coords': [],
        'points': [],
        'index': {},
        'raw_neighbors': [],
        'neighbors': [],
        'visible': [],
        'edges': [],
        'lines': [],
        'region': Polygon(),
        'cell_count': 0,
        'visible_cell_count': 0,
    }


def _add_vertex(lattice, coord, x, y):
    lattice['index'][coord] = len(lattice['coords'])
    lattice['coords'].append(coord)
    lattice['points'].append((x, y))


def build_lattice(width, height, family='triangular', spacing=60):
    """Build the padded vertex lattice covering a width x height canvas.

    Triangular vertices use axial (q, r) coordinates with rows offset so the
    padded region stays rectangular; square vertices use (column, row).
    Neighbor lists hold every lattice neighbour that exists, in
    LATTICE_DIRECTIONS order. Every vertex starts visible.

    Raises ValueError for a non-positive spacing or an unknown family.
    """
    family = normalize_family(family)
    if spacing is None or spacing <= 0:
        raise ValueError("Lattice spacing must be positive, got {!r}".format(spacing))

    lattice = _empty_lattice(width, height, family, spacing)
    margin = LATTICE_MARGINS[family]

    if family == 'triangular':
        row_h = spacing * SQRT3 / 2
        cols = math.ceil(max(width, 0) / spacing) + margin * 2
        rows = math.ceil(max(height, 0) / row_h) + margin * 2
        offset_x = width / 2 - (cols / 2) * spacing
        offset_y = height / 2 - (rows / 2) * row_h
        for r in range(-margin, rows + 1):
            shift = r // 2
            for col in range(-margin, cols + 1):
                q = col - shift
                x = offset_x + (q + r * 0.5) * spacing
                y = offset_y + r * row_h
                _add_vertex(lattice, (q, r), x, y)
    else:
        cols = math.ceil(max(width, 0) / spacing) + margin * 2
        rows = math.ceil(max(height, 0) / spacing) + margin * 2
        offset_x = (width - cols * spacing) / 2
        offset_y = (height - rows * spacing) / 2
        for r in range(rows + 1):
            for c in range(cols + 1):
                _add_vertex(lattice, (c, r), offset_x + c * spacing,
                            offset_y + r * spacing)

    index = lattice['index']
    directions = LATTICE_DIRECTIONS[family]
    for q, r in lattice['coords']:
        nbrs = []
        for dq, dr in directions:
            n = index.get((q + dq, r + dr))
            if n is not None:
                nbrs.append(n)
        lattice['raw_neighbors'].append(nbrs)

    lattice['neighbors'] = [list(n) for n in lattice['raw_neighbors']]
    lattice['visible'] = [True] * len(lattice['coords'])
    log.debug("Built %s lattice: %d vertices (spacing %s)",
              family, len(lattice['coords']), spacing)
    return lattice


def edge_key(a, b):
    return (a, b) if a < b else (b, a)


# ============================================================================
# BOUNDARY SHAPING
# ============================================================================

def _make_cell(lattice, vids):
    points = [lattice['points'][v] for v in vids]
    polygon = Polygon(points)
    c = polygon.centroid
    edges = [edge_key(vids[i], vids[(i + 1) % len(vids)]) for i in range(len(vids))]
    return {
        'vertices': tuple(vids),
        'polygon': polygon,
        'centroid': (c.x, c.y),
        'edges': edges,
        'visible': False,
    }


def lattice_cells(lattice):
    """Enumerate the faces of a lattice.

    Triangular lattices yield an up and a down triangle per vertex where all
    corners exist; square lattices yield one quad per vertex.
    """
    index = lattice['index']
    cells = []
    for (q, r), v in index.items():
        if lattice['family'] == 'triangular':
            right = index.get((q + 1, r))
            below = index.get((q, r + 1))
            if right is None or below is None:
                continue
            cells.append(_make_cell(lattice, (v, right, below)))
            diag = index.get((q + 1, r + 1))
            if diag is not None:
                cells.append(_make_cell(lattice, (right, diag, below)))
        else:
            right = index.get((q + 1, r))
            below = index.get((q, r + 1))
            diag = index.get((q + 1, r + 1))
            if right is None or below is None or diag is None:
                continue
            cells.append(_make_cell(lattice, (v, right, diag, below)))
    return cells


def cell_score(centroid, width, height, chaos, direction, elongation, perm,
               noise_offset=(0.0, 0.0)):
    """Inclusion score for one cell centroid.

    chaos is 0-1, direction in degrees, elongation 0-100. Higher is more
    likely to be kept; the quadratic boost keeps the middle of the canvas.
    """
    cx = width / 2
    cy = height / 2
    dx = centroid[0] - cx
    dy = centroid[1] - cy

    rad = math.radians(direction)
    cos_d = math.cos(-rad)
    sin_d = math.sin(-rad)
    rx = dx * cos_d - dy * sin_d
    ry = dx * sin_d + dy * cos_d
    stretch = 1 + (elongation / 100.0) * 2

    half_diag = max(math.hypot(width, height) / 2, 1e-9)
    d = math.sqrt((rx / stretch) ** 2 + ry ** 2) / half_diag

    frequency = (2.0 + 6.0 * chaos) / (half_diag * 2)
    n = fractal_noise(perm, centroid[0] * frequency + noise_offset[0],
                      centroid[1] * frequency + noise_offset[1])

    center_bias = 0.8 * (1 - d)
    boost = max(0.0, 1 - d / 0.35) ** 2
    return center_bias + 0.6 * chaos * n + boost


def visibility_threshold(chaos):
    return 0.15 + 0.45 * chaos


def cell_adjacency(cells):
    """Dual graph: cells are adjacent when they share an edge key."""
    by_edge = {}
    for i, cell in enumerate(cells):
        for key in cell['edges']:
            by_edge.setdefault(key, []).append(i)
    adjacency = [[] for _ in cells]
    for owners in by_edge.values():
        for a in owners:
            for b in owners:
                if a != b:
                    adjacency[a].append(b)
    return adjacency


def cell_components(cells, adjacency=None):
    """Connected components of visible cells, each a list of cell indices."""
    if adjacency is None:
        adjacency = cell_adjacency(cells)
    seen = set()
    components = []
    for start, cell in enumerate(cells):
        if not cell['visible'] or start in seen:
            continue
        component = []
        queue = deque([start])
        seen.add(start)
        while queue:
            current = queue.popleft()
            component.append(current)
            for n in adjacency[current]:
                if n not in seen and cells[n]['visible']:
                    seen.add(n)
                    queue.append(n)
        components.append(component)
    return components


def keep_largest_component(cells, adjacency=None):
    """Hide every visible cell outside the largest component.

    Returns the number of components that were dropped.
    """
    components = cell_components(cells, adjacency)
    if len(components) <= 1:
        return 0
    largest = max(components, key=len)
    keep = set(largest)
    for component in components:
        if component is largest:
            continue
        for i in component:
            if i not in keep:
                cells[i]['visible'] = False
    return len(components) - 1


def _snap_opacity(distance, falloff):
    if falloff <= 0 or distance >= falloff:
        return 1.0
    value = 0.35 + 0.65 * (distance / falloff)
    return max(1, round(value * 3)) / 3


def shape_boundary(lattice, chaos=30, direction=90, elongation=50, rng=None):
    """Mask the lattice into a single connected organic region.

    Args:
        lattice: dict from build_lattice, modified in place.
        chaos: 0-100. 0 keeps every cell inside the canvas box without
            sampling noise; higher values carve more holes.
        direction: degrees of the elongation axis.
        elongation: 0-100 stretch along that axis.
        rng: random.Random used for the noise table and offset.

    Returns:
        The same lattice dict with visible, neighbors, edges, lines and
        region rebuilt from the surviving cells.
    """
    rng = rng or random.Random()
    width = lattice['width']
    height = lattice['height']
    spacing = lattice['spacing']
    c = max(0.0, min(1.0, chaos / 100.0))

    cells = lattice_cells(lattice)
    pad = spacing * OUTSIDE_MARGIN_CELLS
    bounds = box(-pad, -pad, width + pad, height + pad)

    if c <= 0:
        for cell in cells:
            cell['visible'] = bounds.contains(Point(cell['centroid']))
    else:
        perm = build_permutation(rng)
        noise_offset = (rng.uniform(0, 100), rng.uniform(0, 100))
        threshold = visibility_threshold(c)
        for cell in cells:
            if not bounds.contains(Point(cell['centroid'])):
                continue
            score = cell_score(cell['centroid'], width, height, c, direction,
                               elongation, perm, noise_offset)
            cell['visible'] = score > threshold

    dropped = keep_largest_component(cells)
    surviving = [cell for cell in cells if cell['visible']]

    visible_edges = set()
    visible = [False] * len(lattice['coords'])
    for cell in surviving:
        visible_edges.update(cell['edges'])
        for v in cell['vertices']:
            visible[v] = True

    neighbors = []
    for v, raw in enumerate(lattice['raw_neighbors']):
        if not visible[v]:
            neighbors.append([])
            continue
        neighbors.append([n for n in raw
                          if visible[n] and edge_key(v, n) in visible_edges])

    region = unary_union([cell['polygon'] for cell in surviving]) if surviving else Polygon()
    outline = region.boundary
    falloff = spacing * 1.2
    points = lattice['points']
    edges = sorted(visible_edges)
    lines = []
    for a, b in edges:
        (x1, y1), (x2, y2) = points[a], points[b]
        mid = Point((x1 + x2) / 2, (y1 + y2) / 2)
        opacity = _snap_opacity(outline.distance(mid), falloff)
        lines.append({'x1': x1, 'y1': y1, 'x2': x2, 'y2': y2, 'opacity': opacity})

    lattice['visible'] = visible
    lattice['neighbors'] = neighbors
    lattice['edges'] = edges
    lattice['lines'] = lines
    lattice['region'] = region
    lattice['cell_count'] = len(cells)
    lattice['visible_cell_count'] = len(surviving)
    log.debug("Boundary: %d/%d cells visible, %d components dropped, %d edges",
              len(surviving), len(cells), dropped, len(edges))
    return lattice


def nearest_vertex(lattice, x, y):
    """Index of the visible vertex closest to (x, y), or None."""
    best = None
    best_dist = float('inf')
    for v, (vx, vy) in enumerate(lattice['points']):
        if not lattice['visible'][v]:
            continue
        d = (vx - x) ** 2 + (vy - y) ** 2
        if d < best_dist:
            best_dist = d
            best = v
    return best


def all_visible_positions(lattice):
    return [(v, x, y) for v, (x, y) in enumerate(lattice['points'])
            if lattice['visible'][v]]


def visible_positions(lattice, width, height, padding=40):
    """Visible vertices inside the canvas shrunk by padding, as (index, x, y)."""
    return [(v, x, y) for v, x, y in all_visible_positions(lattice)
            if padding <= x <= width - padding and padding <= y <= height - padding]


# ============================================================================
# NODES
# ============================================================================

def min_separation(size, count, width, height):
    """Minimum distance between accepted nodes."""
    spread = math.sqrt(max(width * height, 0) / max(count, 1)) * 0.2
    return max(size * 4.0, spread)


def select_nodes(lattice, width, height, count=8, bias='directional',
                 axis_angle=45, chaos=30, size=12, padding=60, rng=None):
    """Promote up to `count` visible vertices to nodes.

    Candidates are scored by the bias mode, blended with a uniform random
    score by chaos/100, sorted descending and accepted greedily while no two
    accepted nodes sit closer than min_separation(). Fewer than `count`
    nodes come back when the candidates run out.
    """
    rng = rng or random.Random()
    positions = visible_positions(lattice, width, height, padding)
    if not positions or count <= 0:
        return []

    cx = width / 2
    cy = height / 2
    rad = math.radians(axis_angle)
    ax = math.cos(rad)
    ay = math.sin(rad)
    blend = 1.0 if bias == 'random' else max(0.0, min(1.0, chaos / 100.0))

    max_extent = max(math.hypot(x - cx, y - cy) for _, x, y in positions) or 1.0

    scored = []
    for v, x, y in positions:
        dx = x - cx
        dy = y - cy
        projection = dx * ax + dy * ay
        rejection = math.hypot(dx - projection * ax, dy - projection * ay)
        if bias == 'axis':
            score = 1 - rejection / max_extent
            rand_score = rng.random()
        else:
            score = (projection - rejection * 1.5) / max_extent
            rand_score = rng.random() * 2 - 1
        scored.append((score * (1 - blend) + rand_score * blend, v, x, y))

    scored.sort(key=lambda s: s[0], reverse=True)

    min_dist = min_separation(size, count, width, height)
    min_dist_sq = min_dist * min_dist
    nodes = []
    for _, v, x, y in scored:
        if len(nodes) >= count:
            break
        too_close = False
        for node in nodes:
            if (node['x'] - x) ** 2 + (node['y'] - y) ** 2 < min_dist_sq:
                too_close = True
                break
        if not too_close:
            nodes.append({'index': len(nodes), 'vertex': v, 'x': x, 'y': y,
                          'size': size})

    log.debug("Nodes: %d/%d accepted from %d candidates (min distance %.1f)",
              len(nodes), count, len(positions), min_dist)
    return nodes


# ============================================================================
# ROUTING
# ============================================================================

def find_path(lattice, start, end):
    """Breadth-first shortest path between two vertex indices.

    Returns the list of vertex indices from start to end, [start] when they
    are equal, or None when either is not visible or end is unreachable.
    """
    if start == end:
        return [start]
    visible = lattice['visible']
    if not (0 <= start < len(visible) and 0 <= end < len(visible)):
        return None
    if not visible[start] or not visible[end]:
        return None

    neighbors = lattice['neighbors']
    parent = {start: None}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        if current == end:
            path = []
            node = end
            while node is not None:
                path.append(node)
                node = parent[node]
            path.reverse()
            return path
        for n in neighbors[current]:
            if n not in parent:
                parent[n] = current
                queue.append(n)
    return None


def path_points(lattice, path):
    points = lattice['points']
    return [points[v] for v in path]


def smooth_path(points, resolution=4):
    """Catmull-Rom smoothing through every input point.

    Each segment is subdivided into `resolution` samples, using the clamped
    neighbouring points as tangents. The first and last points are kept
    exactly. Inputs shorter than 3 points are returned as a copy.
    """
    if len(points) < 3:
        return list(points)

    n = len(points)
    result = []
    for i in range(n - 1):
        p0 = points[max(0, i - 1)]
        p1 = points[i]
        p2 = points[i + 1]
        p3 = points[min(n - 1, i + 2)]
        for step in range(resolution):
            s = step / resolution
            s2 = s * s
            s3 = s2 * s
            x = 0.5 * ((2 * p1[0]) + (-p0[0] + p2[0]) * s +
                       (2 * p0[0] - 5 * p1[0] + 4 * p2[0] - p3[0]) * s2 +
                       (-p0[0] + 3 * p1[0] - 3 * p2[0] + p3[0]) * s3)
            y = 0.5 * ((2 * p1[1]) + (-p0[1] + p2[1]) * s +
                       (2 * p0[1] - 5 * p1[1] + 4 * p2[1] - p3[1]) * s2 +
                       (-p0[1] + 3 * p1[1] - 3 * p2[1] + p3[1]) * s3)
            result.append((x, y))
    result.append(points[-1])
    return result


def _as_line(points):
    if len(points) < 2:
        return None
    return LineString(points)


def path_length(points):
    line = _as_line(points)
    return line.length if line is not None else 0.0


def point_on_path(points, t, line=None):
    """Position at normalized arclength t along a point chain.

    t <= 0 and t >= 1 clamp to the end points. Returns None for an empty
    chain.
    """
    if not points:
        return None
    if len(points) == 1 or t <= 0:
        return tuple(points[0])
    if t >= 1:
        return tuple(points[-1])
    if line is None:
        line = LineString(points)
    p = line.interpolate(t, normalized=True)
    return (p.x, p.y)


def truncate_path(points, t, line=None):
    """Leading part of a chain up to normalized arclength t."""
    if not points:
        return []
    if len(points) == 1 or t <= 0:
        return [tuple(points[0])]
    if t >= 1:
        return [tuple(p) for p in points]
    if line is None:
        line = LineString(points)
    part = substring(line, 0, t, normalized=True)
    if part.geom_type == 'Point':
        return [(part.x, part.y)]
    return [tuple(c) for c in part.coords]


def _make_connection(lattice, index, stops, path, smooth=True, resolution=4):
    raw = path_points(lattice, path)
    points = smooth_path(raw, resolution) if smooth else list(raw)
    line = _as_line(points)
    return {
        'index': index,
        'stops': list(stops),
        'path': list(path),
        'points': points,
        'length': line.length if line is not None else 0.0,
        'line': line,
    }


def select_pairs(nodes, count, order='coverage', rng=None):
    """Choose up to `count` node index pairs.

    'coverage' shuffles every pair, then takes pairs touching a node with no
    connection yet before filling the remaining slots in shuffled order.
    'shortest' takes the geometrically closest pairs first.
    """
    rng = rng or random.Random()
    if len(nodes) < 2 or count <= 0:
        return []

    pairs = []
    for i in range(len(nodes)):
        for j in range(i + 1, len(nodes)):
            dist = math.hypot(nodes[i]['x'] - nodes[j]['x'],
                              nodes[i]['y'] - nodes[j]['y'])
            pairs.append((i, j, dist))

    if order == 'shortest':
        pairs.sort(key=lambda p: p[2])
        return [(i, j) for i, j, _ in pairs[:count]]

    rng.shuffle(pairs)
    used = set()
    conns = [0] * len(nodes)
    selected = []
    for i, j, _ in pairs:
        if len(selected) >= count:
            break
        if conns[i] == 0 or conns[j] == 0:
            selected.append((i, j))
            used.add((i, j))
            conns[i] += 1
            conns[j] += 1
    for i, j, _ in pairs:
        if len(selected) >= count:
            break
        if (i, j) not in used:
            selected.append((i, j))
            used.add((i, j))
    return selected


def route_pairwise(lattice, nodes, count, order='coverage', smooth=True,
                   resolution=4, rng=None):
    connections = []
    skipped = 0
    for i, j in select_pairs(nodes, count, order, rng):
        path = find_path(lattice, nodes[i]['vertex'], nodes[j]['vertex'])
        if path is None:
            skipped += 1
            continue
        connections.append(_make_connection(lattice, len(connections), (i, j),
                                            path, smooth, resolution))
    if skipped:
        log.debug("Routing: skipped %d unreachable pairs", skipped)
    return connections


def route_circuits(lattice, nodes, count, min_stops=3, max_stops=6,
                   smooth=True, resolution=4, rng=None):
    """Route `count` multi-stop circuits through randomly chosen nodes.

    A circuit with any unreachable leg is dropped entirely.
    """
    rng = rng or random.Random()
    connections = []
    dropped = 0
    if len(nodes) < 2:
        return connections
    for _ in range(max(0, count)):
        n_stops = min(rng.randint(min_stops, max(min_stops, max_stops)), len(nodes))
        if n_stops < 2:
            continue
        stops = rng.sample(range(len(nodes)), n_stops)
        full = []
        for a, b in zip(stops, stops[1:]):
            leg = find_path(lattice, nodes[a]['vertex'], nodes[b]['vertex'])
            if leg is None:
                full = None
                break
            full.extend(leg if not full else leg[1:])
        if full is None:
            dropped += 1
            continue
        connections.append(_make_connection(lattice, len(connections), stops,
                                            full, smooth, resolution))
    if dropped:
        log.debug("Routing: dropped %d broken circuits", dropped)
    return connections


def route_connections(lattice, nodes, settings=None, rng=None):
    """Route connections using a `connections` config section."""
    settings = merge_config({'connections': settings or {}})['connections']
    if settings['mode'] == 'circuit':
        return route_circuits(lattice, nodes, settings['count'],
                              settings['min_stops'], settings['max_stops'],
                              settings['smooth'], settings['resolution'], rng)
    return route_pairwise(lattice, nodes, settings['count'],
                          settings['pair_order'], settings['smooth'],
                          settings['resolution'], rng)


# ============================================================================
# ANIMATION
# ============================================================================

PHASE_STEP = 0.4
SWEEP_RATE = 0.3
REVEAL_HOLD = 1.3
GLOW_RISE_RATE = 14.0
GLOW_DECAY_RATE = 2.5
GLOW_PASSIVE_DECAY = 0.9
GLOW_EPSILON = 0.005
STREAM_GLOW_START = 0.65


def init_animation(connections, nodes, playing=True):
    return {
        'progress': [0.0] * len(connections),
        'phase': [i * PHASE_STEP for i in range(len(connections))],
        'time': 0.0,
        'glow': [0.0] * len(nodes),
        'glow_target': [0.0] * len(nodes),
        'playing': playing,
    }


def reset_animation(scene):
    scene['animation'] = init_animation(scene['connections'], scene['nodes'],
                                        scene['animation']['playing'])
    return scene['animation']


def sync_animation(scene):
    """Fit the state lists to the scene's current connections and nodes.

    Entries for removed connections or nodes are dropped; new ones start at
    rest. Returns the state dict.
    """
    state = scene['animation']
    n_conns = len(scene['connections'])
    n_nodes = len(scene['nodes'])
    if len(state['progress']) != n_conns or len(state['phase']) != n_conns:
        progress = state['progress'][:n_conns]
        state['progress'] = progress + [0.0] * (n_conns - len(progress))
        state['phase'] = [i * PHASE_STEP for i in range(n_conns)]
    for key in ('glow', 'glow_target'):
        values = state[key][:n_nodes]
        state[key] = values + [0.0] * (n_nodes - len(values))
    return state


def play(scene):
    scene['animation']['playing'] = True


def pause(scene):
    scene['animation']['playing'] = False


def speed_multiplier(speed):
    """Map the 0-100 speed knob to a time multiplier (0.1x to 3x)."""
    return 0.1 + (speed / 100.0) * 2.9


def head_parameter(scene, i):
    """Eased head position (0-1) of connection i for the sweep behaviors."""
    settings = scene['config']['animation']
    state = scene['animation']
    raw = state['progress'][i] + state['phase'][i]
    if settings['behavior'] == 'mirror':
        raw = raw % 2.0
        linear = 2.0 - raw if raw > 1 else raw
        return 0.5 - 0.5 * math.cos(linear * math.pi)
    raw = raw % 1.0
    if settings['loop_ease']:
        return 0.5 - 0.5 * math.cos(raw * math.pi)
    return raw


def head_position(scene, i):
    conn = scene['connections'][i]
    return point_on_path(conn['points'], head_parameter(scene, i), conn['line'])


def _update_node_glows(scene, dt):
    state = scene['animation']
    nodes = scene['nodes']
    radius = scene['config']['animation']['glow_radius']
    radius_sq = radius * radius
    targets = [0.0] * len(nodes)

    if radius > 0:
        for i, conn in enumerate(scene['connections']):
            if len(conn['points']) < 2:
                continue
            hx, hy = head_position(scene, i)
            for j, node in enumerate(nodes):
                dist_sq = (hx - node['x']) ** 2 + (hy - node['y']) ** 2
                if dist_sq < radius_sq:
                    proximity = (1 - math.sqrt(dist_sq) / radius) ** 2
                    targets[j] = max(targets[j], proximity)

    glow = state['glow']
    for j, target in enumerate(targets):
        rate = GLOW_RISE_RATE if glow[j] < target else GLOW_DECAY_RATE
        glow[j] += (target - glow[j]) * min(1.0, rate * dt)
        glow[j] = min(1.0, glow[j])
        if glow[j] < GLOW_EPSILON:
            glow[j] = 0.0
    state['glow_target'] = targets


def _decay_node_glows(scene):
    state = scene['animation']
    glow = state['glow']
    for j in range(len(glow)):
        glow[j] *= GLOW_PASSIVE_DECAY
        if glow[j] < GLOW_EPSILON:
            glow[j] = 0.0
    state['glow_target'] = [0.0] * len(glow)


def update_animation(scene, delta_ms):
    """Advance one frame by delta_ms milliseconds.

    While paused the progress scalars and clock hold still, but node glows
    keep smoothing toward their targets (or decaying) so the frame settles.
    """
    settings = scene['config']['animation']
    state = sync_animation(scene)
    mode = settings['mode']
    dt = (delta_ms / 1000.0) * speed_multiplier(settings['speed'])

    if state['playing'] and mode != 'none':
        state['time'] += dt
        progress = state['progress']
        for i in range(len(progress)):
            if mode == 'stream':
                progress[i] += dt * SWEEP_RATE
                span = 2.0 if settings['behavior'] == 'mirror' else 1.0
                progress[i] %= span
            elif mode == 'reveal':
                progress[i] += dt * SWEEP_RATE
                if progress[i] > REVEAL_HOLD:
                    progress[i] = 0.0

    if mode == 'stream' and settings['node_pulse']:
        _update_node_glows(scene, dt)
    else:
        _decay_node_glows(scene)


def set_progress(scene, t):
    """Force every connection to progress t (frame-indexed export)."""
    progress = scene['animation']['progress']
    for i in range(len(progress)):
        progress[i] = t


def set_export_frame(scene, frame_index, total_frames, duration=3.0):
    """Put the animation into the exact state of an exported frame."""
    fraction = frame_index / total_frames if total_frames > 0 else 0.0
    set_progress(scene, fraction)
    scene['animation']['time'] = fraction * duration
    return fraction


def trail_segments(scene, i):
    """Stream window behind the head of connection i, tail first.

    Each segment carries alpha (cubic ramp), a width multiplier and a glow
    amount that is non-zero only on the leading 35% of the window.
    """
    conn = scene['connections'][i]
    points = conn['points']
    if len(points) < 2:
        return []
    settings = scene['config']['animation']
    head_t = head_parameter(scene, i)
    tail_t = max(0.0, head_t - settings['stream_length'])
    if head_t <= tail_t + 0.001:
        return []

    segments = max(10, int(settings['trail_length']))
    result = []
    prev = point_on_path(points, tail_t, conn['line'])
    for s in range(segments):
        progress = (s + 1) / segments
        t1 = tail_t + progress * (head_t - tail_t)
        pos = point_on_path(points, t1, conn['line'])
        glow = 0.0
        if progress > STREAM_GLOW_START:
            glow = (progress - STREAM_GLOW_START) / (1 - STREAM_GLOW_START)
        result.append({
            'x1': prev[0], 'y1': prev[1], 'x2': pos[0], 'y2': pos[1],
            'alpha': progress ** 3,
            'width': 0.3 + progress * 2.0,
            'glow': glow,
        })
        prev = pos
    return result


def reveal_fraction(scene, i):
    state = scene['animation']
    t = (state['progress'][i] + state['phase'][i] * SWEEP_RATE) % REVEAL_HOLD
    return min(t, 1.0)


def reveal_points(scene, i):
    conn = scene['connections'][i]
    t = reveal_fraction(scene, i)
    if t <= 0 or len(conn['points']) < 2:
        return []
    return truncate_path(conn['points'], t, conn['line'])


def pulse_level(time, phase):
    return 0.4 + 0.6 * (0.5 + 0.5 * math.sin(time * 3 + phase))


def connection_pulses(scene):
    t = scene['animation']['time']
    return [pulse_level(t, i * 1.2) for i in range(len(scene['connections']))]


def node_pulses(scene):
    t = scene['animation']['time']
    return [pulse_level(t, i * 0.8 + 2) for i in range(len(scene['nodes']))]


# ============================================================================
# SCENE
# ============================================================================

def generate_scene(width=None, height=None, config=None, family=None,
                   spacing=None, seed=None, progress_callback=None):
    """Build a complete scene: lattice, boundary, nodes, connections, animation.

    All randomness comes from one random.Random(seed), so identical inputs
    give identical scenes. Explicit arguments override the matching config
    values.
    """
    config = clamp_config(config or {})
    if width is not None:
        config['width'] = width
    if height is not None:
        config['height'] = height
    if family is not None:
        config['grid']['family'] = normalize_family(family)
    if spacing is not None:
        config['grid']['spacing'] = spacing
    if seed is not None:
        config['seed'] = seed

    w = config['width']
    h = config['height']
    grid = config['grid']
    node_cfg = config['nodes']
    rng = random.Random(config['seed'])
    total = 4

    lattice = build_lattice(w, h, grid['family'], grid['spacing'])
    if progress_callback:
        progress_callback(1, total, 'lattice')
    shape_boundary(lattice, grid['chaos'], grid['direction'], grid['elongation'], rng)
    if progress_callback:
        progress_callback(2, total, 'boundary')
    nodes = select_nodes(lattice, w, h, node_cfg['count'], node_cfg['bias'],
                         node_cfg['axis_angle'], node_cfg['chaos'],
                         node_cfg['size'], node_cfg['padding'], rng)
    if progress_callback:
        progress_callback(3, total, 'nodes')
    connections = route_connections(lattice, nodes, config['connections'], rng)
    if progress_callback:
        progress_callback(4, total, 'connections')

    log.debug("Scene %dx%d seed %s: %d nodes, %d connections",
              w, h, config['seed'], len(nodes), len(connections))
    return {
        'width': w,
        'height': h,
        'config': config,
        'lattice': lattice,
        'nodes': nodes,
        'connections': connections,
        'animation': init_animation(connections, nodes,
                                    config['animation']['playing']),
    }


def regenerate(scene, width=None, height=None, family=None, spacing=None,
               progress_callback=None):
    """Fresh scene from an existing one's config (e.g. after a resize).

    Animation state starts over, but a paused scene stays paused.
    """
    fresh = generate_scene(width if width is not None else scene['width'],
                           height if height is not None else scene['height'],
                           scene['config'], family, spacing,
                           progress_callback=progress_callback)
    fresh['animation']['playing'] = scene['animation']['playing']
    return fresh


def render_data(scene):
    """Everything a renderer needs for the current frame, in canvas space."""
    sync_animation(scene)
    mode = scene['config']['animation']['mode']
    connections = scene['connections']
    data = {
        'mode': mode,
        'lines': scene['lattice']['lines'],
        'nodes': [{'x': n['x'], 'y': n['y'], 'size': n['size']}
                  for n in scene['nodes']],
        'connections': [{'points': c['points'], 'length': c['length']}
                        for c in connections],
        'heads': [],
        'trails': [],
        'reveals': [],
        'pulses': {'connections': [], 'nodes': []},
        'glows': list(scene['animation']['glow']),
    }
    if mode == 'stream':
        for i, conn in enumerate(connections):
            if len(conn['points']) < 2:
                data['heads'].append(None)
                data['trails'].append([])
                continue
            data['heads'].append(head_position(scene, i))
            data['trails'].append(trail_segments(scene, i))
    elif mode == 'reveal':
        data['reveals'] = [reveal_points(scene, i) for i in range(len(connections))]
    elif mode == 'pulse':
        data['pulses'] = {'connections': connection_pulses(scene),
                          'nodes': node_pulses(scene)}
    return data


# ============================================================================
# SVG RENDERING
# ============================================================================

def _polyline(points, **kwargs):
    flat = []
    for x, y in points:
        flat.extend((x, y))
    return draw.Lines(*flat, close=False, fill='none', **kwargs)


def _draw_connections(d, scene, opacity):
    cfg = scene['config']
    conn_cfg = cfg['connections']
    extra = {}
    if conn_cfg['style'] == 'dashed':
        extra['stroke_dasharray'] = '{} {}'.format(conn_cfg['dash_length'],
                                                   conn_cfg['dash_gap'])
    for conn in scene['connections']:
        if len(conn['points']) < 2:
            continue
        d.append(_polyline(conn['points'], stroke=cfg['style']['connection_color'],
                           stroke_width=conn_cfg['thickness'],
                           stroke_opacity=opacity, **extra))


def _draw_stream(d, scene, data):
    color = scene['config']['style']['animation_color']
    base = scene['config']['connections']['thickness']
    for trail in data['trails']:
        for seg in trail:
            if seg['glow'] > 0:
                # halo under the leading edge
                d.append(draw.Line(seg['x1'], seg['y1'], seg['x2'], seg['y2'],
                                   stroke=color, stroke_linecap='round',
                                   stroke_width=base * seg['width'] + seg['glow'] ** 2 * 8,
                                   stroke_opacity=seg['glow'] * 0.3))
            d.append(draw.Line(seg['x1'], seg['y1'], seg['x2'], seg['y2'],
                               stroke=color, stroke_linecap='round',
                               stroke_width=base * seg['width'],
                               stroke_opacity=seg['alpha']))


def _draw_node_glows(d, scene, data):
    color = scene['config']['style']['animation_color']
    for node, intensity in zip(scene['nodes'], data['glows']):
        if intensity < 0.01:
            continue
        r = (node['size'] * 2.5 + intensity * 10) / 2
        d.append(draw.Circle(node['x'], node['y'], r, fill='none', stroke=color,
                             stroke_width=1.5 + intensity * 2,
                             stroke_opacity=intensity * 130 / 255))
        d.append(draw.Circle(node['x'], node['y'], node['size'] * 0.9, stroke='none',
                             fill=color, fill_opacity=intensity * 45 / 255))


def _draw_reveal(d, scene, data):
    color = scene['config']['style']['animation_color']
    width = scene['config']['connections']['thickness'] + 1
    for points in data['reveals']:
        if len(points) < 2:
            continue
        d.append(_polyline(points, stroke=color, stroke_width=width))


def _draw_pulse(d, scene, data):
    cfg = scene['config']
    color = cfg['style']['animation_color']
    intensity = cfg['animation']['glow_intensity'] / 100.0
    thickness = cfg['connections']['thickness'] + 1
    for conn, glow in zip(scene['connections'], data['pulses']['connections']):
        if len(conn['points']) < 2:
            continue
        d.append(_polyline(conn['points'], stroke=color,
                           stroke_width=thickness * (0.8 + glow * 0.4) + 6 * glow * intensity,
                           stroke_opacity=0.25 * glow * intensity))
        d.append(_polyline(conn['points'], stroke=color,
                           stroke_width=thickness * (0.8 + glow * 0.4),
                           stroke_opacity=glow))
    node_color = cfg['style']['node_color']
    weight = cfg['style']['node_stroke_weight']
    for node, glow in zip(scene['nodes'], data['pulses']['nodes']):
        d.append(draw.Circle(node['x'], node['y'], node['size'] * (1 + glow * 0.1),
                             fill='none', stroke=node_color,
                             stroke_width=weight * (0.8 + glow * 0.4),
                             stroke_opacity=glow))


def _draw_nodes(d, scene):
    cfg = scene['config']
    color = cfg['style']['node_color']
    weight = cfg['style']['node_stroke_weight']
    for node in scene['nodes']:
        s = node['size']
        if cfg['nodes']['style'] == 'square':
            d.append(draw.Rectangle(node['x'] - s, node['y'] - s, s * 2, s * 2,
                                    fill='none', stroke=color, stroke_width=weight))
        else:
            d.append(draw.Circle(node['x'], node['y'], s, fill='none',
                                 stroke=color, stroke_width=weight))
        d.append(draw.Circle(node['x'], node['y'], 2, fill=color, stroke='none'))


def render_svg(scene, background=True):
    """Render the scene's current frame to an SVG string.

    Layers bottom to top: background, grid lines, static connections
    (dimmed under streams, hidden during reveal), animation, nodes.
    """
    cfg = scene['config']
    style = cfg['style']
    data = render_data(scene)
    d = draw.Drawing(scene['width'], scene['height'])

    if background:
        d.append(draw.Rectangle(0, 0, scene['width'], scene['height'],
                                fill=style['background']))

    for ln in data['lines']:
        d.append(draw.Line(ln['x1'], ln['y1'], ln['x2'], ln['y2'],
                           stroke=style['grid_color'], stroke_width=1,
                           stroke_opacity=style['grid_opacity'] * ln['opacity']))

    mode = data['mode']
    if mode == 'stream':
        _draw_connections(d, scene, 0.25)
        _draw_stream(d, scene, data)
        if cfg['animation']['node_pulse']:
            _draw_node_glows(d, scene, data)
    elif mode == 'reveal':
        _draw_reveal(d, scene, data)
    elif mode == 'pulse':
        _draw_connections(d, scene, 1.0)
        _draw_pulse(d, scene, data)
    else:
        _draw_connections(d, scene, 1.0)

    if cfg['nodes']['visible']:
        _draw_nodes(d, scene)

    return d.as_svg()


# ============================================================================
# EXPORT
# ============================================================================

def export_frames(scene, out_dir, duration=3.0, fps=30, background=True,
                  prefix='nodal', progress_callback=None):
    """Write a deterministic frame-indexed SVG sequence.

    Frame i is rendered with every connection forced to progress i/total.
    The animation state is restored afterwards. Returns the written paths.
    """
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    total_frames = max(1, int(round(duration * fps)))
    saved = copy.deepcopy(scene['animation'])
    paths = []
    try:
        pause(scene)
        for i in range(total_frames):
            set_export_frame(scene, i, total_frames, duration)
            path = out / '{}-{:04d}.svg'.format(prefix, i)
            path.write_text(render_svg(scene, background), encoding='utf-8')
            paths.append(path)
            if progress_callback:
                progress_callback(i + 1, total_frames)
    finally:
        scene['animation'] = saved
    log.info("Exported %d frames to %s", len(paths), out)
    return paths
