#!/usr/bin/env python3
"""
Command-line interface for the SVG map renderer.

Usage:
    # Render one view to a file
    svg-pipeline render --style style.json --lon 8.54 --lat 47.37 --zoom 13 -o zurich.svg

    # Render at double resolution with a tile cache
    svg-pipeline render --style style.json --zoom 4 --scale 2 --cache-dir .tile-cache -o world.svg

    # Render several named views
    svg-pipeline batch --style style.json --regions regions.json --output-dir out/

regions.json holds a list of {"name", "lon", "lat", "zoom"} objects, with
optional "width", "height" and "scale".
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from tqdm import tqdm

from .config import RenderConfig
from .errors import RenderError
from .render import load_style, render_to_svg


def _build_config(args: argparse.Namespace) -> RenderConfig:
    config = RenderConfig()
    if args.cache_dir:
        config.fetch.cache_dir = Path(args.cache_dir)
    if args.workers:
        config.fetch.workers = args.workers
    if args.timeout:
        config.fetch.timeout = args.timeout
    return config


def cmd_render(args: argparse.Namespace) -> int:
    """Render a single view."""
    config = _build_config(args)

    try:
        svg = render_to_svg(
            args.style,
            width=args.width,
            height=args.height,
            lon=args.lon,
            lat=args.lat,
            zoom=args.zoom,
            scale=args.scale,
            config=config,
        )
    except RenderError as e:
        print(f"✗ Render failed: {e}", file=sys.stderr)
        return 1

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(svg, encoding="utf-8")
        print(f"✓ Saved to: {output_path} ({len(svg.encode('utf-8')):,} bytes)")
    else:
        sys.stdout.write(svg + "\n")
    return 0


def cmd_batch(args: argparse.Namespace) -> int:
    """Render a list of named views."""
    config = _build_config(args)

    try:
        style = load_style(args.style)
    except RenderError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    regions = json.loads(Path(args.regions).read_text(encoding="utf-8"))
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    print(f"Rendering {len(regions)} regions to {output_dir}")

    failures = 0
    for region in tqdm(regions, disable=args.quiet):
        name = region["name"]
        try:
            svg = render_to_svg(
                style,
                width=region.get("width"),
                height=region.get("height"),
                lon=region.get("lon"),
                lat=region.get("lat"),
                zoom=region.get("zoom"),
                scale=region.get("scale"),
                config=config,
            )
        except RenderError as e:
            logger.error(f"Region {name} failed: {e}")
            failures += 1
            continue
        (output_dir / f"{name}.svg").write_text(svg, encoding="utf-8")

    print(f"Rendered {len(regions) - failures}/{len(regions)} regions")
    return 1 if failures else 0


def _add_fetch_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--cache-dir", help="Directory for cached tile responses")
    parser.add_argument("--workers", type=int, help="Concurrent tile requests")
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Render MapLibre styles to static SVG maps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Render command
    render_parser = subparsers.add_parser("render", help="Render one view to SVG")
    render_parser.add_argument("--style", required=True, help="Style JSON file")
    render_parser.add_argument("--lon", type=float, default=0.0, help="Center longitude")
    render_parser.add_argument("--lat", type=float, default=0.0, help="Center latitude")
    render_parser.add_argument("--zoom", type=float, default=2.0, help="Zoom level")
    render_parser.add_argument("--width", type=float, default=1024, help="Width in pixels")
    render_parser.add_argument("--height", type=float, default=1024, help="Height in pixels")
    render_parser.add_argument("--scale", type=float, default=1.0, help="Output scale factor")
    render_parser.add_argument("--output", "-o", help="Output file (default: stdout)")
    _add_fetch_arguments(render_parser)

    # Batch command
    batch_parser = subparsers.add_parser("batch", help="Render several named views")
    batch_parser.add_argument("--style", required=True, help="Style JSON file")
    batch_parser.add_argument("--regions", required=True, help="JSON list of regions")
    batch_parser.add_argument("--output-dir", required=True, help="Output directory")
    batch_parser.add_argument("--quiet", "-q", action="store_true", help="No progress bar")
    _add_fetch_arguments(batch_parser)

    args = parser.parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "WARNING")

    if args.command == "render":
        return cmd_render(args)
    elif args.command == "batch":
        return cmd_batch(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
