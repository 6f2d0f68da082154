from __future__ import annotations

import argparse
import asyncio
import shutil
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console

from .core.config import get_settings
from .core.logging import configure_logging, level_from_name
from .media import FFmpegRemuxer, FFprobeProber, MediaToolError, classify_aspect
from .media.tools import binary_available

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))

    if getattr(args, "check", False):
        _run_environment_check(settings.ffmpeg_binary, settings.ffprobe_binary)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI.

    Returns:
        The argument parser.
    """
    parser = argparse.ArgumentParser(description="Tubely media developer CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe dependencies")

    subparsers = parser.add_subparsers(dest="command")

    probe_parser = subparsers.add_parser("probe", help="Print the first video stream geometry and aspect class")
    probe_parser.add_argument("--file", required=True, help="Path to the source media file")
    probe_parser.set_defaults(func=_cmd_probe)

    faststart_parser = subparsers.add_parser("faststart", help="Write a fast-start copy of an MP4 without re-encoding")
    faststart_parser.add_argument("--file", required=True, help="Path to the source media file")
    faststart_parser.add_argument("--output", help="Destination path (defaults to <name>.faststart.mp4)")
    faststart_parser.set_defaults(func=_cmd_faststart)
    return parser


def _require_file(raw: str) -> Path:
    media_path = Path(raw).expanduser().resolve()
    if not media_path.exists():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)
    return media_path


def _cmd_probe(args: argparse.Namespace) -> None:
    """Run ffprobe and print geometry plus aspect class as JSON.

    Args:
        args: The command-line arguments.
    """
    settings = get_settings()
    media_path = _require_file(args.file)
    prober = FFprobeProber(settings.ffprobe_binary, timeout_s=settings.media_tool_timeout_s)
    try:
        geometry = asyncio.run(prober.probe(media_path))
    except MediaToolError as exc:
        console.print(f"[red]ffprobe failed ({exc.reason.value}):[/] {exc.stderr or exc}")
        sys.exit(3)
    console.print_json(
        data={
            "file": str(media_path),
            "width": geometry.width,
            "height": geometry.height,
            "codec": geometry.codec_name,
            "aspect": classify_aspect(geometry).value,
        }
    )


def _cmd_faststart(args: argparse.Namespace) -> None:
    """Remux a file so its index precedes the media data.

    Args:
        args: The command-line arguments.
    """
    settings = get_settings()
    media_path = _require_file(args.file)
    output = Path(args.output).expanduser().resolve() if args.output else media_path.with_suffix(".faststart.mp4")
    remuxer = FFmpegRemuxer(settings.ffmpeg_binary, timeout_s=settings.media_tool_timeout_s)
    try:
        remuxed = asyncio.run(remuxer.remux(media_path))
    except MediaToolError as exc:
        console.print(f"[red]ffmpeg failed:[/] {exc.stderr or exc}")
        sys.exit(3)
    shutil.move(str(remuxed), str(output))
    console.print(f"[green]Fast-start copy written to {output}[/]")


def _run_environment_check(ffmpeg_binary: str, ffprobe_binary: str) -> None:
    """Check for the presence of required external dependencies."""
    results = {
        "ffmpeg": binary_available(ffmpeg_binary),
        "ffprobe": binary_available(ffprobe_binary),
    }

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'✅' if ok else '❌'}")

    if not all(results.values()):
        console.print("[red]Missing dependencies detected. Install ffmpeg and make sure it is on PATH.[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
