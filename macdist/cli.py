"""
macdist — macOS distribution packager

Signs a built .app and turns it into the requested distributables
(DMG, zip, 7z, Mac App Store installer package).

Usage:
  macdist /path/to/project                         # Targets from macdist.build.yaml
  macdist /path/to/project --target dmg zip        # Explicit targets
  macdist /path/to/project --target mas --arch x64 arm64
  macdist /path/to/project --app out/My.app --compression maximum
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .config import COMPRESSION_LEVELS, load_options
from .errors import MacDistError
from .packager import package


def configure_logging(debug=False):
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("  %(message)s"))
    root = logging.getLogger("macdist")
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    root.propagate = False


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Sign and package a macOS app into distributable artifacts")
    parser.add_argument("project_dir", type=str,
                        help="Path to the project directory (contains macdist.config.json)")
    parser.add_argument("--target", nargs="+",
                        help="Targets: default, dmg, zip, 7z, mas (overrides build.target)")
    parser.add_argument("--arch", nargs="+", default=["x64"],
                        help="Architectures to package (default: x64)")
    parser.add_argument("--compression", choices=COMPRESSION_LEVELS,
                        help="Override build.compression")
    parser.add_argument("--app", type=str,
                        help="Path to the built .app (overrides build.app)")
    parser.add_argument("--out-dir", type=str,
                        help="Output directory (overrides build.outDir)")
    parser.add_argument("--debug", action="store_true",
                        help="Verbose tool output")

    args = parser.parse_args(argv)
    configure_logging(args.debug)
    project_dir = Path(args.project_dir).resolve()

    if not project_dir.exists():
        print(f"ERROR: Project directory not found: {project_dir}")
        sys.exit(1)

    try:
        options = load_options(project_dir, {
            "target": args.target,
            "compression": args.compression,
            "app": args.app,
            "outDir": args.out_dir,
        })
        print(f"\n{'='*60}")
        print(f"  Packaging {options.product_name} v{options.version}")
        print(f"  Arch: {', '.join(args.arch)}")
        print(f"{'='*60}")
        artifacts = asyncio.run(package(options, args.arch))
    except MacDistError as e:
        print(f"  ERROR: {e}")
        sys.exit(1)

    print(f"\n{'='*60}")
    for artifact in artifacts:
        print(f"  {artifact.path}")
    print(f"{'='*60}\n")
    return artifacts


if __name__ == "__main__":
    main()
