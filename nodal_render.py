#!/usr/bin/env python
"""Render a nodal grid composition to SVG from the command line.

Writes a single still frame by default, or a frame-indexed sequence with
--frames for assembling into video elsewhere.
"""

import argparse
import logging
import random
import sys
from datetime import datetime

import nodal_core


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--config', help="JSON config file (partial configs are fine)")
    parser.add_argument('--hash', help="percent-encoded JSON config, as in a share link")
    parser.add_argument('--width', type=int)
    parser.add_argument('--height', type=int)
    parser.add_argument('--seed', type=int)
    parser.add_argument('--family', choices=['triangular', 'square', 'isometric'])
    parser.add_argument('--spacing', type=int)
    parser.add_argument('--mode', choices=['stream', 'reveal', 'pulse', 'none'])
    parser.add_argument('--frames', action='store_true',
                        help="export a frame sequence instead of one still")
    parser.add_argument('--duration', type=float, default=3.0)
    parser.add_argument('--fps', type=int, default=30)
    parser.add_argument('--progress', type=float, default=0.0,
                        help="animation progress (0-1) of the still frame")
    parser.add_argument('--transparent', action='store_true')
    parser.add_argument('--out', help="output file (still) or directory (frames)")
    parser.add_argument('--save-config', help="also write the effective config here")
    parser.add_argument('-v', '--verbose', action='store_true')
    return parser.parse_args(argv)


def build_config(args):
    if args.config:
        try:
            config = nodal_core.load_config_file(args.config)
        except (OSError, ValueError) as e:
            sys.exit("Could not read config {}: {}".format(args.config, e))
    elif args.hash:
        config = nodal_core.config_from_hash(args.hash)
        if config is None:
            sys.exit("Could not decode config hash")
    else:
        config = nodal_core.merge_config({'seed': random.randint(0, 99999)})

    overrides = {}
    for key in ('width', 'height', 'seed'):
        if getattr(args, key) is not None:
            overrides[key] = getattr(args, key)
    grid = {}
    if args.family:
        grid['family'] = args.family
    if args.spacing:
        grid['spacing'] = args.spacing
    if grid:
        overrides['grid'] = grid
    if args.mode:
        overrides['animation'] = {'mode': args.mode}
    return nodal_core.clamp_config(nodal_core.merge_config(overrides, config))


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    config = build_config(args)
    print(f"Generating {config['width']}x{config['height']} {config['grid']['family']} "
          f"grid (seed {config['seed']})")
    scene = nodal_core.generate_scene(config=config)
    print(f"  {sum(scene['lattice']['visible'])} vertices, {len(scene['nodes'])} nodes, "
          f"{len(scene['connections'])} connections")

    stamp = datetime.now().strftime('%Y%m%d-%H%M%S')
    if args.frames:
        out_dir = args.out or f"nodal-{stamp}"

        def frame_update(current, total):
            sys.stdout.write(f"\r  Frame {current}/{total}")
            sys.stdout.flush()

        paths = nodal_core.export_frames(scene, out_dir, duration=args.duration,
                                         fps=args.fps, background=not args.transparent,
                                         progress_callback=frame_update)
        print(f"\nSaved: {len(paths)} frames in {out_dir}")
    else:
        nodal_core.pause(scene)
        nodal_core.set_progress(scene, args.progress)
        filename = args.out or f"nodal-{stamp}.svg"
        with open(filename, 'w', encoding='utf-8') as f:
            f.write(nodal_core.render_svg(scene, background=not args.transparent))
        print(f"Saved: {filename}")

    if args.save_config:
        nodal_core.save_config_file(scene['config'], args.save_config)
        print(f"Saved: {args.save_config}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
