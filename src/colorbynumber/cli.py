"""
Command-line interface for the color-by-number template generator.
"""

import os
import sys
import json
import argparse

from .config import Config
from .geometry import GridType
from .pipeline import convert_image

GRID_TYPE_NOTES = {
    GridType.SQUARE: "axis-aligned squares",
    GridType.DIAMOND: "squares rotated 45 degrees, odd rows shifted half a cell",
    GridType.HONEYCOMB: "circles in a staggered hexagonal packing",
    GridType.PENTAGON: "pointy-top hexagons in a staggered packing",
}


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Convert an image into a numbered color-by-number template",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Square grid, default settings
  colorbynumber photo.jpg template.json

  # Honeycomb grid with 12 colors and 16px cells
  colorbynumber photo.jpg template.json --grid-type honeycomb --colors 12 --cell-size 16

  # Per-pixel voting instead of block averaging
  colorbynumber photo.jpg template.json --mode vote

  # List grid types
  colorbynumber --list-grid-types
        """
    )

    parser.add_argument("input", nargs="?", help="Input image file (JPG/PNG)")
    parser.add_argument("output", nargs="?", help="Output JSON file for the template")

    parser.add_argument(
        "--grid-type", "-g",
        help="Grid type: square, diamond, honeycomb or pentagon (default from config)"
    )
    parser.add_argument("--cell-size", type=int, help="Cell size in pixels")
    parser.add_argument("--colors", "-n", type=int, help="Maximum palette size")
    parser.add_argument(
        "--mode",
        choices=["block", "vote"],
        help="Cell color selection: block average or per-pixel vote"
    )
    parser.add_argument(
        "--config", "-c",
        default="config.yaml",
        help="Configuration file path (defaults are used if it does not exist)"
    )
    parser.add_argument(
        "--list-grid-types",
        action="store_true",
        help="List available grid types"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    return parser


def validate_arguments(args: argparse.Namespace) -> bool:
    """Check required arguments before any work is done."""
    if args.list_grid_types:
        return True

    if not args.input:
        print("Error: Input image file is required")
        return False

    if not args.output:
        print("Error: Output JSON path is required")
        return False

    if not os.path.exists(args.input):
        print(f"Error: Input file not found: {args.input}")
        return False

    return True


def list_grid_types():
    print("\n" + "=" * 60)
    print("AVAILABLE GRID TYPES")
    print("=" * 60)
    for grid_type in GridType:
        print(f"  {grid_type.value:<10} {GRID_TYPE_NOTES[grid_type]}")
    print("  (\"standard\" is accepted as an alias for square)")
    print("=" * 60)


def load_config(args: argparse.Namespace) -> Config:
    block_average = None
    if args.mode is not None:
        block_average = args.mode == "block"
    return Config.from_yaml(
        args.config,
        grid_type=args.grid_type,
        cell_size=args.cell_size,
        max_colors=args.colors,
        block_average=block_average,
    )


def generate_template(args: argparse.Namespace) -> bool:
    """Generate the template and write it as JSON."""
    try:
        config = load_config(args)
        grid = convert_image(args.input, config)

        output_dir = os.path.dirname(args.output)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump(grid.to_dict(), f, indent=2)

        print("\n" + "=" * 60)
        print("[OK] TEMPLATE GENERATED")
        print("=" * 60)
        print(f"Output: {args.output}")
        print(f"Grid: {grid.grid_type.value}, {grid.width} x {grid.height} ({grid.total_cells:,} cells)")
        print(f"Grid hash: {grid.grid_hash}")
        print("\nPalette:")
        for entry in grid.get_color_legend():
            code = entry['code'] or '-'
            print(f"  {code:>3}  {entry['hex']}  {entry['name']:<14} {entry['count']:>6} cells")
        return True

    except Exception as e:
        print(f"\n[X] Error during template generation: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return False


def main(argv=None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.list_grid_types:
        list_grid_types()
        return

    if not validate_arguments(args):
        sys.exit(1)

    success = generate_template(args)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
