"""Command-line interface for termprobe.

Provides a quick way to look at what a program draws in a virtual
terminal (``run``) and to replay a captured output stream through the
terminal engine (``parse``).
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

logger = logging.getLogger(__name__)


def _parse_size(value: str) -> tuple[int, int]:
    """Parse ``WIDTHxHEIGHT`` (e.g. ``80x24``)."""
    width, sep, height = value.lower().partition("x")
    try:
        if not sep:
            raise ValueError(value)
        size = (int(width), int(height))
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid size {value!r}, expected WIDTHxHEIGHT"
        ) from None
    if size[0] <= 0 or size[1] <= 0:
        raise argparse.ArgumentTypeError(f"size must be positive, got {value!r}")
    return size


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="termprobe",
        description="Run terminal programs in a virtual terminal and inspect the screen",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/termprobe.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser(
        "run", help="Run a program in a virtual terminal and print its screen"
    )
    run_parser.add_argument(
        "--wait-for", type=str, default=None, metavar="TEXT",
        help="Wait until TEXT appears on screen (exit 1 if it never does)",
    )
    run_parser.add_argument(
        "--timeout", type=float, default=None, metavar="S",
        help="Seconds to wait (default: harness timeout from config)",
    )
    run_parser.add_argument(
        "--size", type=_parse_size, default=None, metavar="WxH",
        help="Terminal size (default: from config, 80x24)",
    )
    run_parser.add_argument(
        "argv", nargs=argparse.REMAINDER, metavar="COMMAND",
        help="Program and arguments, after --",
    )

    parse_parser = subparsers.add_parser(
        "parse", help="Feed a captured output stream through the terminal engine"
    )
    parse_parser.add_argument("file", type=Path, help="File holding raw terminal output")
    parse_parser.add_argument(
        "--size", type=_parse_size, default=None, metavar="WxH",
        help="Terminal size (default: from config, 80x24)",
    )

    return parser.parse_args(argv)


def _print_screen(screen: str) -> None:
    print("\n".join(line.rstrip() for line in screen.split("\n")))


def _run(settings, args) -> int:
    """Spawn the program, optionally wait for text, print the screen."""
    from termprobe.errors import ProcessExitedError, TermProbeError, WaitTimeoutError
    from termprobe.harness.harness import TuiTestHarness

    argv = list(args.argv)
    if argv and argv[0] == "--":
        argv = argv[1:]
    if not argv:
        print("termprobe run: missing COMMAND", file=sys.stderr)
        return 2

    update: dict[str, object] = {}
    if args.size is not None:
        update["width"], update["height"] = args.size
    if args.timeout is not None:
        update["timeout"] = args.timeout
    config = settings.harness.model_copy(update=update)

    try:
        with TuiTestHarness.from_config(config) as harness:
            harness.spawn(argv)
            status = 0
            if args.wait_for is not None:
                try:
                    harness.wait_for_text(args.wait_for)
                except (WaitTimeoutError, ProcessExitedError) as e:
                    logger.error("%s", e)
                    status = 1
            else:
                _settle(harness, config.timeout)
            _print_screen(harness.screen_contents())
            return status
    except TermProbeError as e:
        logger.error("%s", e)
        return 1


def _settle(harness, timeout: float) -> None:
    """Keep reading output until the program exits or ``timeout`` passes."""
    from termprobe.errors import ProcessExitedError

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            harness.update_state()
        except ProcessExitedError:
            return
        time.sleep(harness.poll_interval)


def _parse(settings, args) -> int:
    """Replay a byte stream and print screen, cursor and graphics."""
    from termprobe.screen.state import ScreenState

    width, height = args.size or (settings.harness.width, settings.harness.height)
    try:
        data = args.file.read_bytes()
    except OSError as e:
        logger.error("Cannot read %s: %s", args.file, e)
        return 1

    state = ScreenState(width, height)
    state.feed(data)
    _print_screen(state.contents())
    row, col = state.cursor_position()
    print(f"Cursor: row={row}, col={col}")
    regions = state.graphics_regions()
    print(f"Graphics regions: {len(regions)}")
    for region in regions:
        print(
            f"  {region.protocol.display_name} at {region.position} "
            f"bounds={region.bounds} size={region.pixel_size}"
        )
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the termprobe CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from termprobe.config.settings import load_settings
    from termprobe.utils.logging import setup_logging

    settings = load_settings(args.config)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    if args.command == "run":
        logger.debug("Running %s", " ".join(args.argv))
        status = _run(settings, args)

    elif args.command == "parse":
        logger.debug("Parsing %s", args.file)
        status = _parse(settings, args)

    else:
        status = 2

    if status:
        sys.exit(status)


if __name__ == "__main__":
    main()
