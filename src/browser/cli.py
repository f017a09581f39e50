"""
browser-bridge - lightweight CDP browser control for agents
===========================================================

Usage:
    browser-bridge <command> [args...]

Every command attaches to the first page tab of the browser at CDP_URL,
prints a short answer and exits.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .cdp_browser import CDPBrowser
from .commands import run_command
from .config import BridgeConfig
from .errors import BridgeError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="browser-bridge",
        description="Lightweight CDP browser control",
        epilog="Env: CDP_URL (default: http://127.0.0.1:18800)",
    )
    sub = parser.add_subparsers(dest="command", metavar="<command>")

    sub.add_parser("tabs", help="List open tabs")
    p = sub.add_parser("open", help="Navigate to URL")
    p.add_argument("url")
    p = sub.add_parser("tab", help="Switch to tab by index")
    p.add_argument("index", type=int)
    p = sub.add_parser("newtab", help="Open new tab")
    p.add_argument("url", nargs="?")
    p = sub.add_parser("close", help="Close tab (default: current)")
    p.add_argument("index", type=int, nargs="?")

    p = sub.add_parser("elements", help="List interactive elements (indexed)")
    p.add_argument("selector", nargs="?")
    p = sub.add_parser("click", help="Click element by index")
    p.add_argument("index", type=int)
    p = sub.add_parser("type", help="Type into element by index")
    p.add_argument("index", type=int)
    p.add_argument("text", nargs="+")
    p = sub.add_parser("upload", help="Upload file to input (default: input[type=file])")
    p.add_argument("path")
    p.add_argument("selector", nargs="?")

    p = sub.add_parser("click-xy", help="Click at page coordinates")
    p.add_argument("x")
    p.add_argument("y")
    p.add_argument("--double", action="store_true")
    p.add_argument("--right", action="store_true")
    p = sub.add_parser("hover-xy", help="Hover at page coordinates")
    p.add_argument("x")
    p.add_argument("y")
    p = sub.add_parser("drag-xy", help="Drag between coordinates")
    for name in ("x1", "y1", "x2", "y2"):
        p.add_argument(name)
    p = sub.add_parser("iframe-rect", help="Get iframe bounding box for click-xy")
    p.add_argument("selector", nargs="+")

    p = sub.add_parser("text", help="Extract page text")
    p.add_argument("selector", nargs="?")
    p = sub.add_parser("html", help="Get element HTML by selector or index")
    p.add_argument("target")
    p = sub.add_parser("eval", help="Run JavaScript")
    p.add_argument("expression", nargs="+")
    p = sub.add_parser("screenshot", help="Save screenshot")
    p.add_argument("path", nargs="?")
    p.add_argument("--full", action="store_true", help="Capture the whole page")
    p = sub.add_parser("scroll", help="Scroll up/down/top/bottom")
    p.add_argument("direction")
    p.add_argument("amount", type=int, nargs="?")
    sub.add_parser("url", help="Current URL")
    sub.add_parser("back", help="Go back")
    sub.add_parser("forward", help="Go forward")
    sub.add_parser("refresh", help="Reload page")
    p = sub.add_parser("wait", help="Wait for ms")
    p.add_argument("ms", type=int, nargs="?")

    sub.add_parser("help", help="Show this help")
    return parser


def setup_logging(config: BridgeConfig):
    handlers = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.WARNING),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command or args.command == "help":
        parser.print_help()
        return 0

    config = BridgeConfig.from_env()
    setup_logging(config)
    browser = CDPBrowser(config)

    try:
        output = run_command(args.command, args, browser)
    except BridgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception(f"Unexpected failure in {args.command}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if output:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
