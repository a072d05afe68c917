"""Tests for config merging, clamping and hash persistence."""

import pytest

import nodal_core
from nodal_core import (
    CONFIG_RANGES,
    DEFAULT_CONFIG,
    clamp_config,
    config_from_hash,
    config_to_hash,
    load_config_file,
    merge_config,
    save_config_file,
    upgrade_legacy_keys,
)


def test_merge_keeps_unrelated_defaults():
    cfg = merge_config({'grid': {'spacing': 30}})
    assert cfg['grid']['spacing'] == 30
    assert cfg['grid']['family'] == DEFAULT_CONFIG['grid']['family']
    assert cfg['nodes'] == DEFAULT_CONFIG['nodes']


def test_merge_does_not_mutate_defaults():
    cfg = merge_config({'nodes': {'count': 99}})
    cfg['animation']['speed'] = 1
    assert DEFAULT_CONFIG['nodes']['count'] == 8
    assert DEFAULT_CONFIG['animation']['speed'] == 50


def test_merge_over_custom_base():
    base = merge_config({'seed': 5})
    cfg = merge_config({'width': 300}, base)
    assert cfg['seed'] == 5
    assert cfg['width'] == 300
    assert base['width'] == DEFAULT_CONFIG['width']


class TestClampConfig:
    def test_numeric_ranges(self):
        cfg = clamp_config({'grid': {'spacing': -5, 'chaos': 500},
                            'animation': {'speed': -10}})
        assert cfg['grid']['spacing'] == 10
        assert cfg['grid']['chaos'] == 100
        assert cfg['animation']['speed'] == 0

    def test_integer_keys_are_ints(self):
        cfg = clamp_config({'nodes': {'count': 3.6}})
        assert cfg['nodes']['count'] == 4
        assert isinstance(cfg['nodes']['count'], int)

    def test_bad_numbers_fall_back(self):
        cfg = clamp_config({'grid': {'chaos': 'lots'}, 'width': 'wide'})
        assert cfg['grid']['chaos'] == DEFAULT_CONFIG['grid']['chaos']
        assert cfg['width'] == DEFAULT_CONFIG['width']

    def test_legacy_names(self):
        cfg = clamp_config({'grid': {'family': 'isometric'},
                            'animation': {'mode': 'particle'}})
        assert cfg['grid']['family'] == 'triangular'
        assert cfg['animation']['mode'] == 'stream'
        assert clamp_config({'animation': {'mode': 'linedraw'}})['animation']['mode'] == 'reveal'
        assert clamp_config({'animation': {'mode': 'glow'}})['animation']['mode'] == 'pulse'

    def test_unknown_choice_uses_default(self):
        cfg = clamp_config({'nodes': {'bias': 'sideways'}})
        assert cfg['nodes']['bias'] == DEFAULT_CONFIG['nodes']['bias']

    def test_booleans(self):
        cfg = clamp_config({'animation': {'playing': 'false', 'node_pulse': 'yes'}})
        assert cfg['animation']['playing'] is False
        assert cfg['animation']['node_pulse'] is True

    def test_broken_section_replaced(self):
        cfg = clamp_config({'grid': None})
        assert cfg['grid'] == DEFAULT_CONFIG['grid']

    def test_stop_bounds_ordered(self):
        cfg = clamp_config({'connections': {'min_stops': 5, 'max_stops': 3}})
        assert cfg['connections']['max_stops'] == 5

    @pytest.mark.parametrize('section, key', sorted(CONFIG_RANGES))
    def test_range_endpoints(self, section, key):
        lo, hi = CONFIG_RANGES[(section, key)]
        for expected, given in ((lo, lo), (hi, hi), (lo, lo - 1), (hi, hi + 1)):
            overrides = {section: {key: given}}
            if key in ('min_stops', 'max_stops'):
                overrides[section] = {'min_stops': given, 'max_stops': given}
            assert clamp_config(overrides)[section][key] == pytest.approx(expected)

    def test_endpoint_values_become_ints(self):
        cfg = clamp_config({'grid': {'chaos': 0}, 'animation': {'speed': 100}})
        assert cfg['grid']['chaos'] == 0
        assert cfg['animation']['speed'] == 100
        assert isinstance(cfg['grid']['chaos'], int)


class TestConfigHash:
    def test_roundtrip(self):
        cfg = clamp_config({'seed': 42, 'grid': {'spacing': 35}})
        assert config_from_hash(config_to_hash(cfg)) == cfg

    def test_leading_hash_sign(self):
        cfg = clamp_config({'seed': 3})
        assert config_from_hash('#' + config_to_hash(cfg))['seed'] == 3

    def test_malformed(self):
        assert config_from_hash('%7Bnot json') is None
        assert config_from_hash('') is None
        assert config_from_hash(None) is None

    def test_not_an_object(self):
        assert config_from_hash('%5B1%2C2%5D') is None


def test_config_file_roundtrip(tmp_path):
    cfg = clamp_config({'seed': 9, 'nodes': {'count': 3}})
    path = tmp_path / 'nodal.json'
    save_config_file(cfg, path)
    assert load_config_file(path) == cfg


def test_partial_config_file(tmp_path):
    path = tmp_path / 'partial.json'
    path.write_text('{"grid": {"family": "square"}}', encoding='utf-8')
    cfg = nodal_core.load_config_file(path)
    assert cfg['grid']['family'] == 'square'
    assert cfg['grid']['spacing'] == DEFAULT_CONFIG['grid']['spacing']


class TestLegacyKeys:
    LEGACY = {
        'seed': 12,
        'canvasWidth': 800,
        'canvasHeight': 600,
        'backgroundColor': '#000000',
        'grid': {'type': 'isometric', 'cellSize': 30, 'shapeChaos': 10,
                 'shapeDirection': 45, 'opacity': 0.7, 'color': '#eeeeee'},
        'nodes': {'axisAngle': 120, 'strokeWeight': 3},
        'connections': {'color': '#ff0000', 'dashLength': 12},
        'animation': {'mode': 'particle', 'streamLength': 0.3,
                      'nodePulse': False, 'glowIntensity': 80},
    }

    def test_share_link_from_older_version(self):
        cfg = config_from_hash(config_to_hash(self.LEGACY))
        assert (cfg['width'], cfg['height']) == (800, 600)
        assert cfg['grid']['family'] == 'triangular'
        assert cfg['grid']['spacing'] == 30
        assert cfg['grid']['chaos'] == 10
        assert cfg['grid']['direction'] == 45
        assert cfg['nodes']['axis_angle'] == 120
        assert cfg['connections']['dash_length'] == 12
        assert cfg['animation']['mode'] == 'stream'
        assert cfg['animation']['stream_length'] == pytest.approx(0.3)
        assert cfg['animation']['node_pulse'] is False
        assert cfg['animation']['glow_intensity'] == 80
        assert cfg['style'] == dict(DEFAULT_CONFIG['style'],
                                    background='#000000', grid_color='#eeeeee',
                                    grid_opacity=0.7, node_stroke_weight=3,
                                    connection_color='#ff0000')
        assert 'type' not in cfg['grid']
        assert 'canvasWidth' not in cfg

    def test_current_key_wins(self):
        cfg = upgrade_legacy_keys({'width': 500, 'canvasWidth': 800,
                                   'grid': {'spacing': 20, 'cellSize': 30}})
        assert cfg == {'width': 500, 'grid': {'spacing': 20}}

    def test_input_not_modified(self):
        upgrade_legacy_keys(self.LEGACY)
        assert self.LEGACY['grid']['cellSize'] == 30

    def test_broken_sections_are_skipped(self):
        assert upgrade_legacy_keys({'grid': None}) == {'grid': None}
        assert upgrade_legacy_keys(None) == {}
