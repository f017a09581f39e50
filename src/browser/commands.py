"""
Command table for the browser bridge.

Each handler takes the browser and the parsed arguments and returns the text
to print. Recoverable BridgeErrors become that text here. Transport failures
propagate to the CLI, which exits non-zero.
"""

import argparse
import logging
import time
from typing import Callable, Dict, List, Optional

from . import interaction, page_tools
from .cdp_browser import CDPBrowser
from .element_index import scan
from .errors import BridgeError

logger = logging.getLogger(__name__)

Handler = Callable[[CDPBrowser, argparse.Namespace], str]


def _floats(values: List[str]) -> Optional[List[float]]:
    try:
        return [float(v) for v in values]
    except (TypeError, ValueError):
        return None


# ── Handlers ───────────────────────────────────────────────────────

def _tabs(browser, args):
    return page_tools.list_tabs(browser)


def _open(browser, args):
    with browser.open_page() as page:
        return page_tools.open_url(page, args.url, browser.config.load_timeout)


def _tab(browser, args):
    return page_tools.switch_tab(browser, args.index)


def _newtab(browser, args):
    return page_tools.new_tab(browser, args.url)


def _close(browser, args):
    return page_tools.close_tab(browser, args.index)


def _elements(browser, args):
    with browser.open_page() as page:
        return scan(page, args.selector).format()


def _click(browser, args):
    with browser.open_page() as page:
        return interaction.click_index(page, args.index)


def _type(browser, args):
    text = " ".join(args.text)
    if not text:
        return "Usage: type <index> <text>"
    with browser.open_page() as page:
        return interaction.type_index(page, args.index, text)


def _upload(browser, args):
    with browser.open_page() as page:
        return interaction.upload_file(page, args.path, args.selector)


def _click_xy(browser, args):
    coords = _floats([args.x, args.y])
    if coords is None:
        return "Error: x and y must be numbers"
    with browser.open_page() as page:
        return interaction.click_xy(page, *coords, double=args.double, right=args.right)


def _hover_xy(browser, args):
    coords = _floats([args.x, args.y])
    if coords is None:
        return "Error: x and y must be numbers"
    with browser.open_page() as page:
        return interaction.hover_xy(page, *coords)


def _drag_xy(browser, args):
    coords = _floats([args.x1, args.y1, args.x2, args.y2])
    if coords is None:
        return "Error: all coordinates must be numbers"
    with browser.open_page() as page:
        return interaction.drag_xy(page, *coords)


def _iframe_rect(browser, args):
    with browser.open_page() as page:
        return page_tools.iframe_rect(page, " ".join(args.selector))


def _text(browser, args):
    with browser.open_page() as page:
        return page_tools.page_text(page, args.selector)


def _html(browser, args):
    with browser.open_page() as page:
        return page_tools.page_html(page, args.target)


def _eval(browser, args):
    with browser.open_page() as page:
        return page_tools.evaluate_js(page, " ".join(args.expression))


def _screenshot(browser, args):
    with browser.open_page() as page:
        return page_tools.screenshot(page, args.path, full_page=args.full)


def _scroll(browser, args):
    with browser.open_page() as page:
        return page_tools.scroll(page, args.direction, args.amount)


def _url(browser, args):
    return page_tools.current_url(browser)


def _back(browser, args):
    with browser.open_page() as page:
        return page_tools.go_back(page)


def _forward(browser, args):
    with browser.open_page() as page:
        return page_tools.go_forward(page)


def _refresh(browser, args):
    with browser.open_page() as page:
        return page_tools.refresh(page)


def _wait(browser, args):
    duration = args.ms if args.ms and args.ms > 0 else 1000
    time.sleep(duration / 1000.0)
    return f"Waited {duration}ms"


COMMANDS: Dict[str, Handler] = {
    "tabs": _tabs,
    "open": _open,
    "tab": _tab,
    "newtab": _newtab,
    "close": _close,
    "elements": _elements,
    "click": _click,
    "type": _type,
    "upload": _upload,
    "click-xy": _click_xy,
    "hover-xy": _hover_xy,
    "drag-xy": _drag_xy,
    "iframe-rect": _iframe_rect,
    "text": _text,
    "html": _html,
    "eval": _eval,
    "screenshot": _screenshot,
    "scroll": _scroll,
    "url": _url,
    "back": _back,
    "forward": _forward,
    "refresh": _refresh,
    "wait": _wait,
}


def run_command(name: str, args: argparse.Namespace, browser: CDPBrowser) -> str:
    """Run one command; recoverable failures come back as the output line."""
    handler = COMMANDS[name]
    try:
        return handler(browser, args)
    except BridgeError as e:
        if e.fatal:
            raise
        logger.info(f"{name} failed ({e.kind.value}): {e}")
        return str(e)
