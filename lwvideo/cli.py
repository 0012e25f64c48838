"""Command-line entry point for video-to-save builds."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import structlog
from PIL import UnidentifiedImageError
from pydantic import ValidationError

from .blotter import BlotterError, read_file
from .config import PipelineConfig
from .extract import ExtractError, PipelineError, extract_frames
from .frames import FrameError, list_frames, load_frames
from .inject import InjectError, inject_file
from .pipeline import run_pipeline
from .preview import render_png, render_svg

logger = structlog.get_logger(__name__)

HANDLED_ERRORS = (
    BlotterError,
    FrameError,
    InjectError,
    ExtractError,
    PipelineError,
    ValidationError,
    UnidentifiedImageError,
    OSError,
)


def configure_logging(verbose: bool = False) -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.INFO
        ),
    )


def ask_replace(path: Path) -> bool:
    """Interactive confirmation before deleting an existing save."""
    print(path)
    answer = input(f"Remove existing save '{path.name}'? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {text!r}")
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lwvideo",
        description="Turn a video into a Logic World save that plays it on a pixel display.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Run the full pipeline: save, frames, circuit")
    build.add_argument("--input", type=Path, dest="input_video", help="Source video")
    build.add_argument("--width", type=positive_int, help="Display width (default: 24)")
    build.add_argument("--height", type=positive_int, help="Display height (default: 18)")
    build.add_argument(
        "--fps", type=positive_int, dest="framerate", help="Sampled frames per second"
    )
    build.add_argument("--saves-dir", type=Path, help="Logic World saves directory")
    build.add_argument("--template", dest="template_name", help="Template save name")
    build.add_argument("--title-prefix", help="Prefix of the generated save name")
    build.add_argument("--frames", type=Path, dest="frames_dir", help="Frames scratch directory")
    build.add_argument(
        "-y", "--yes", action="store_true", help="Replace an existing save without asking"
    )

    inject = sub.add_parser("inject", help="Add the display circuit to an existing save file")
    inject.add_argument("save", type=Path, help="Path to data.logicworld (modified in place)")
    inject.add_argument(
        "--frames", type=Path, default=Path("frames"), help="Directory of frame images"
    )

    extract = sub.add_parser("extract", help="Extract frames from a video with ffmpeg")
    extract.add_argument("video", type=Path, help="Source video")
    extract.add_argument("--frames", type=Path, default=Path("frames"), help="Output directory")
    extract.add_argument("--width", type=positive_int, default=24)
    extract.add_argument("--height", type=positive_int, default=18)
    extract.add_argument("--fps", type=positive_int, default=10)

    info = sub.add_parser("info", help="Print a save file's header summary as JSON")
    info.add_argument("save", type=Path)

    preview = sub.add_parser("preview", help="Render thresholded frames as a contact sheet")
    preview.add_argument("frames", type=Path, help="Directory of frame images")
    preview.add_argument("output", type=Path, help="Output file (.svg or .png)")
    preview.add_argument("--columns", type=positive_int, default=10)
    preview.add_argument("--scale", type=positive_int, default=4)

    return parser


def _cmd_build(args: argparse.Namespace) -> None:
    config = PipelineConfig.from_env(
        input_video=args.input_video,
        width=args.width,
        height=args.height,
        framerate=args.framerate,
        saves_dir=args.saves_dir,
        template_name=args.template_name,
        title_prefix=args.title_prefix,
        frames_dir=args.frames_dir,
    )
    confirm = (lambda _path: True) if args.yes else ask_replace
    stats = run_pipeline(config, confirm)
    print(f"{config.save_dir}: {stats.frames} frames, {stats.components_added} components")


def _cmd_inject(args: argparse.Namespace) -> None:
    stats = inject_file(args.save, args.frames)
    print(
        f"{args.save}: {stats.frames} frames at {stats.width}x{stats.height}, "
        f"+{stats.components_added} components, +{stats.wires_added} wires"
    )


def _cmd_extract(args: argparse.Namespace) -> None:
    frames = extract_frames(args.video, args.frames, args.width, args.height, args.fps)
    print(f"{len(frames)} frames written to {args.frames}")


def _cmd_info(args: argparse.Namespace) -> None:
    print(json.dumps(read_file(args.save).summary(), indent=2))


def _cmd_preview(args: argparse.Namespace) -> None:
    bitmaps = [bitmap for _path, bitmap in load_frames(list_frames(args.frames))]
    if args.output.suffix.lower() == ".png":
        args.output.write_bytes(render_png(bitmaps, args.columns, args.scale))
    else:
        args.output.write_text(render_svg(bitmaps, args.columns, args.scale), encoding="utf-8")
    print(f"Preview of {len(bitmaps)} frames written to {args.output}")


COMMANDS = {
    "build": _cmd_build,
    "inject": _cmd_inject,
    "extract": _cmd_extract,
    "info": _cmd_info,
    "preview": _cmd_preview,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        COMMANDS[args.command](args)
    except HANDLED_ERRORS as e:
        logger.error("command_failed", command=args.command, error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
