"""Command line entry point: grade one photograph and write the result."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Sequence

from . import __version__
from .errors import LutoriaError
from .utils.logging import configure_logging, get_logger

_LOGGER = get_logger("cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lutoria",
        description="Grade a photograph toward a cinematic look.",
    )
    parser.add_argument("source", nargs="?", type=Path, help="image to grade")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="output file (default: Lutoria_Export_<timestamp>.jpg beside the source)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--preset", metavar="ID", help="apply a look preset")
    mode.add_argument("--reference", metavar="PATH", type=Path, help="match the colours of a reference image")
    mode.add_argument("--mood", metavar="TEXT", help="describe the grade in words (needs an API key)")
    mode.add_argument("--params", metavar="FILE", type=Path, help="re-apply a saved .grade.json")
    parser.add_argument("--analyze", action="store_true", help="print a technical analysis of the source")
    parser.add_argument("--cpu", action="store_true", help="render on the CPU instead of OpenGL")
    parser.add_argument("--save-params", action="store_true", help="write a .grade.json next to the output")
    parser.add_argument("--list-presets", action="store_true", help="list the available presets and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _print_presets() -> None:
    from .core.presets import iter_presets

    for preset in iter_presets():
        print(f"{preset.id:<16} {preset.name:<20} {preset.description}")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return the process exit code."""

    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    if args.list_presets:
        _print_presets()
        return 0
    if args.source is None:
        parser.error("the following arguments are required: source")

    # Rendering happens off screen; a display is never required.
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PySide6.QtGui import QGuiApplication

    # The application object must stay referenced while GL resources live.
    app = QGuiApplication.instance() or QGuiApplication([sys.argv[0]])

    from .appctx import AppContext
    from .facade import GradeFacade
    from .io.sidecar import load_grade
    from .utils.image_io import export_file_name

    context = AppContext(prefer_gpu=not args.cpu)
    facade = GradeFacade(context)
    failures: list[str] = []
    facade.gradeFailed.connect(failures.append)
    facade.progressUpdated.connect(
        lambda stage, percent: _LOGGER.info("[%3d%%] %s", percent, stage or "Done")
    )

    try:
        facade.load_source(args.source)
        if args.analyze:
            print(facade.analyze_source())

        if args.reference is not None:
            facade.load_reference(args.reference)
            result = facade.match_reference()
        elif args.mood:
            result = facade.apply_mood(args.mood)
        elif args.params is not None:
            result = facade.apply_parameters(load_grade(args.params))
        else:
            result = facade.apply_preset(args.preset or "dune_arrakis")

        if result is None:
            for message in failures:
                _LOGGER.error("%s", message)
            return 1

        output = args.output or args.source.with_name(export_file_name())
        written = facade.export(output, with_sidecar=args.save_params)
        print(written)
    except LutoriaError as exc:
        _LOGGER.error("%s", exc)
        return 1
    finally:
        context.close()
        app.processEvents()
    return 0


if __name__ == "__main__":  # pragma: no cover - manual launch
    raise SystemExit(main())
