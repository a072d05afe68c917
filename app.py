import streamlit as st
import streamlit.components.v1 as components
import nodal_core
import random
import re

st.set_page_config(page_title="Nodal Grid Preview", layout="wide")
st.title("Nodal Grid Preview")


def _islider(label, lo, hi, value, step=1, **kwargs):
    return st.slider(label, lo, hi, int(min(max(value, lo), hi)), step, **kwargs)


# Shared links carry the whole config in ?config=<percent-encoded JSON>
if 'config' not in st.session_state:
    shared = nodal_core.config_from_hash(st.query_params.get('config', ''))
    st.session_state.config = shared or nodal_core.merge_config(
        {'seed': random.randint(0, 99999)})

base = st.session_state.config

with st.sidebar:
    st.header("Canvas")
    canvas_w = _islider("Width", 320, 3840, base['width'], 10)
    canvas_h = _islider("Height", 240, 2160, base['height'], 10)
    seed = st.number_input("Seed", 0, 99999, min(max(base['seed'], 0), 99999), 1)

    st.header("Grid")
    grid = base['grid']
    family = st.selectbox("Lattice", ['triangular', 'square'],
                          index=['triangular', 'square'].index(grid['family']))
    spacing = _islider("Cell Size", 20, 200, grid['spacing'], 5)
    with st.expander("Shape"):
        shape_chaos = _islider("Shape Chaos", 0, 100, grid['chaos'], 1,
                                help="0 fills the canvas; higher values carve holes")
        shape_direction = _islider("Direction", 0, 360, grid['direction'], 5)
        shape_elongation = _islider("Elongation", 0, 100, grid['elongation'], 1)

    st.header("Nodes")
    nodes = base['nodes']
    node_count = _islider("Node Count", 0, 40, nodes['count'])
    node_bias = st.selectbox("Placement", ['directional', 'axis', 'random'],
                             index=['directional', 'axis', 'random'].index(nodes['bias']))
    axis_angle = _islider("Axis Angle", 0, 360, nodes['axis_angle'], 5,
                           help="0=right, 90=down, 180=left, 270=up")
    node_chaos = _islider("Placement Chaos", 0, 100, nodes['chaos'], 1)
    node_size = _islider("Node Size", 4, 40, nodes['size'], 1)
    node_style = st.selectbox("Node Style", ['circle', 'square'],
                              index=['circle', 'square'].index(nodes['style']))
    nodes_visible = st.checkbox("Show Nodes", value=nodes['visible'])

    st.header("Connections")
    conns = base['connections']
    conn_count = _islider("Connection Count", 0, 40, conns['count'])
    conn_mode = st.selectbox("Routing", ['pairwise', 'circuit'],
                             index=['pairwise', 'circuit'].index(conns['mode']))
    pair_order = st.selectbox("Pair Order", ['coverage', 'shortest'],
                              index=['coverage', 'shortest'].index(conns['pair_order']),
                              disabled=conn_mode != 'pairwise')
    smooth = st.checkbox("Smooth Curves", value=conns['smooth'])
    thickness = st.slider("Thickness", 0.5, 8.0, min(8.0, max(0.5, float(conns['thickness']))), 0.5)
    conn_style = st.selectbox("Line Style", ['solid', 'dashed'],
                              index=['solid', 'dashed'].index(conns['style']))

    st.header("Animation")
    anim = base['animation']
    modes = ['stream', 'reveal', 'pulse', 'none']
    anim_mode = st.selectbox("Mode", modes, index=modes.index(anim['mode']))
    behavior = st.selectbox("Behavior", ['mirror', 'loop'],
                            index=['mirror', 'loop'].index(anim['behavior']),
                            disabled=anim_mode != 'stream')
    with st.expander("Advanced Animation Parameters"):
        speed = _islider("Speed", 0, 100, anim['speed'], 1)
        stream_length = st.slider("Stream Length", 0.02, 0.5,
                                  min(0.5, max(0.02, float(anim['stream_length']))), 0.01)
        trail_length = _islider("Trail Smoothness", 10, 60, anim['trail_length'], 1)
        glow_radius = _islider("Glow Radius", 0, 120, anim['glow_radius'], 1)
        glow_intensity = _islider("Glow Intensity", 0, 100, anim['glow_intensity'], 1)
        node_pulse = st.checkbox("Node Pulse", value=anim['node_pulse'])

    st.header("Colors")
    style = base['style']
    with st.expander("Palette"):
        background = st.color_picker("Background", style['background'])
        grid_color = st.color_picker("Grid", style['grid_color'])
        grid_opacity = st.slider("Grid Opacity", 0.0, 1.0, float(style['grid_opacity']), 0.05)
        accent = st.color_picker("Accent", style['animation_color'])

    st.header("Preview")
    frame_count = st.slider("Frames", 10, 240, 90, 10)
    frame = st.slider("Frame", 0, frame_count - 1, 0, 1)

    regenerate = st.button("Regenerate Layout", type="primary")

config = nodal_core.clamp_config({
    'seed': seed,
    'width': canvas_w,
    'height': canvas_h,
    'grid': {'family': family, 'spacing': spacing, 'chaos': shape_chaos,
             'direction': shape_direction, 'elongation': shape_elongation},
    'nodes': {'count': node_count, 'bias': node_bias, 'axis_angle': axis_angle,
              'chaos': node_chaos, 'size': node_size, 'style': node_style,
              'visible': nodes_visible},
    'connections': {'count': conn_count, 'mode': conn_mode, 'pair_order': pair_order,
                    'smooth': smooth, 'thickness': thickness, 'style': conn_style},
    'animation': {'mode': anim_mode, 'behavior': behavior, 'speed': speed,
                  'stream_length': stream_length, 'trail_length': trail_length,
                  'glow_radius': glow_radius, 'glow_intensity': glow_intensity,
                  'node_pulse': node_pulse, 'playing': False},
    'style': {'background': background, 'grid_color': grid_color,
              'grid_opacity': grid_opacity, 'node_color': accent,
              'connection_color': accent, 'animation_color': accent},
})
st.session_state.config = config

# Geometry only depends on these keys; styling/animation edits reuse the scene
geometry_key = nodal_core.config_to_hash({k: config[k] for k in
                                          ('seed', 'width', 'height', 'grid',
                                           'nodes', 'connections')})

if (regenerate or 'scene' not in st.session_state
        or st.session_state.get('geometry_key') != geometry_key):
    gen_progress = st.progress(0, text="Generating lattice...")

    def gen_update(step, total, label):
        gen_progress.progress(step / total, text="Built {} ({}/{})".format(label, step, total))

    st.session_state.scene = nodal_core.generate_scene(config=config,
                                                       progress_callback=gen_update)
    st.session_state.geometry_key = geometry_key
    gen_progress.empty()

scene = st.session_state.scene
scene['config'] = config
nodal_core.sync_animation(scene)

nodal_core.set_export_frame(scene, frame, frame_count, duration=frame_count / 30.0)
if config['animation']['mode'] == 'stream' and config['animation']['node_pulse']:
    # settle node glows for a still frame
    for _ in range(30):
        nodal_core.update_animation(scene, 1000 / 30.0)

svg_string = nodal_core.render_svg(scene)
display_svg = re.sub(r'width="\d+"', 'width="100%"', svg_string, count=1)
display_svg = re.sub(r'height="\d+"', 'height="100%"', display_svg, count=1)

st.caption("{} vertices visible, {} nodes, {} connections".format(
    sum(scene['lattice']['visible']), len(scene['nodes']), len(scene['connections'])))

html_content = f'''
<div style="background:#f0f0f0; height:100%; display:flex; align-items:center;
            justify-content:center; overflow:auto; padding:20px; box-sizing:border-box;">
    <div style="width:100%; aspect-ratio:{canvas_w}/{canvas_h}; box-shadow: 0 2px 8px rgba(0,0,0,0.1);">
        {display_svg}
    </div>
</div>
'''
components.html(html_content, height=700, scrolling=True)

col1, col2 = st.columns(2)
with col1:
    st.download_button(
        "Download SVG",
        svg_string,
        file_name="nodal-{}-{:04d}.svg".format(config['seed'], frame),
        mime="image/svg+xml"
    )
with col2:
    st.download_button(
        "Download Config",
        nodal_core.config_to_hash(config),
        file_name="nodal-config.txt",
        mime="text/plain"
    )
st.text_input("Share", "?config=" + nodal_core.config_to_hash(config))
