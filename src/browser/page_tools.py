"""
Page Tools - tab management and plain page commands
===================================================
Thin wrappers over single CDP calls: tabs, navigation, text/html extraction,
eval, screenshots and scrolling. Each returns the one-line (or one-block)
answer printed by the CLI.
"""

import base64
import json
import logging
import time
from typing import Optional

from . import dom_scripts
from .cdp_browser import CDPBrowser
from .element_index import ensure_indexed
from .errors import BridgeError, ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_SCROLL = 600


# ── Tabs ───────────────────────────────────────────────────────────

def list_tabs(browser: CDPBrowser) -> str:
    tabs = browser.list_tabs()
    if not tabs:
        return "No tabs open."
    return "\n".join(f"[{i}] {t.title or '(untitled)'} — {t.url}" for i, t in enumerate(tabs))


def switch_tab(browser: CDPBrowser, index: int) -> str:
    tab = browser.tab_by_index(index)
    browser.activate_tab(tab)
    return f"Switched to tab [{index}]: {tab.title} — {tab.url}"


def new_tab(browser: CDPBrowser, url: Optional[str] = None) -> str:
    tab_id = browser.new_tab(url or "about:blank")
    return f"Opened new tab: {tab_id}"


def close_tab(browser: CDPBrowser, index: Optional[int] = None) -> str:
    tab = browser.tab_by_index(index) if index is not None else browser.current_tab()
    browser.close_tab(tab)
    return f"Closed tab: {tab.title}"


def current_url(browser: CDPBrowser) -> str:
    return browser.current_tab().url


# ── Navigation ─────────────────────────────────────────────────────

def open_url(page, url: str, load_timeout: float = 10.0) -> str:
    if not url.startswith("http"):
        url = "https://" + url
    page.call("Page.enable")
    page.call("Page.navigate", {"url": url})
    if page.wait_for_event("Page.loadEventFired", load_timeout) is None:
        logger.warning(f"No load event for {url} after {load_timeout}s, continuing")
    return f"Navigated to {url}"


def _history_step(page, step: int) -> str:
    history = page.call("Page.getNavigationHistory")
    current = history.get("currentIndex", 0)
    entries = history.get("entries", [])
    target = current + step
    if target < 0:
        return "Already at first page in history."
    if target >= len(entries):
        return "Already at last page in history."
    entry = entries[target]
    page.call("Page.navigateToHistoryEntry", {"entryId": entry["id"]})
    return f"{'Back' if step < 0 else 'Forward'} to: {entry.get('url', '')}"


def go_back(page) -> str:
    return _history_step(page, -1)


def go_forward(page) -> str:
    return _history_step(page, 1)


def refresh(page) -> str:
    page.call("Page.reload")
    return "Refreshed."


def scroll(page, direction: str, amount: Optional[int] = None) -> str:
    if direction not in ("up", "down", "top", "bottom"):
        return "Usage: scroll <up|down|top|bottom> [pixels]"
    page.evaluate(dom_scripts.scroll_script(direction, amount or DEFAULT_SCROLL))
    return f"Scrolled {direction}" + (f" {amount}px" if amount else "")


# ── Content ────────────────────────────────────────────────────────

def page_text(page, selector: Optional[str] = None) -> str:
    data = page.evaluate(dom_scripts.text_script(selector)) or {}
    if data.get("error"):
        raise BridgeError(data["error"], kind=ErrorKind.SELECTOR_NOT_FOUND)
    return data.get("text", "(empty page)")


def page_html(page, target: str) -> str:
    """outerHTML by CSS selector, or by element index when `target` is a number."""
    if target.isdigit():
        index = int(target)
        ensure_indexed(page)
        html = page.evaluate(dom_scripts.html_script(index=index))
        if html is None:
            raise BridgeError(
                f"Element [{index}] not found. Run elements to re-index.",
                kind=ErrorKind.INDEX_NOT_FOUND,
            )
        return html
    html = page.evaluate(dom_scripts.html_script(selector=target))
    if html is None:
        raise BridgeError(f"Selector not found: {target}", kind=ErrorKind.SELECTOR_NOT_FOUND)
    return html


def evaluate_js(page, expression: str) -> str:
    result = page.send("Runtime.evaluate", {
        "expression": expression,
        "returnByValue": True,
        "awaitPromise": True,
    })
    if "error" in result:
        raise BridgeError(f"Error: {result['error']}", kind=ErrorKind.PAGE_ERROR)

    exception = result.get("exceptionDetails")
    if exception:
        desc = (exception.get("exception") or {}).get("description") or exception.get("text", "")
        return f"Error: {desc}"

    remote = result.get("result", {})
    if "value" in remote:
        value = remote["value"]
        return value if isinstance(value, str) else json.dumps(value, indent=2)
    if remote.get("description"):
        return remote["description"]
    return "(undefined)" if remote.get("type") == "undefined" else json.dumps(remote)


def iframe_rect(page, selector: str) -> str:
    r = page.evaluate(dom_scripts.rect_script(selector))
    if not r:
        raise BridgeError(f"Selector not found: {selector}", kind=ErrorKind.SELECTOR_NOT_FOUND)
    return (f"x={r['x']} y={r['y']} w={r['width']} h={r['height']} "
            f"center=({r['cx']}, {r['cy']})")


# ── Screenshots ────────────────────────────────────────────────────

def screenshot(page, path: Optional[str] = None, full_page: bool = False) -> str:
    params = {"format": "png"}
    if full_page:
        metrics = page.call("Page.getLayoutMetrics")
        content_size = metrics.get("cssContentSize") or metrics.get("contentSize", {})
        params["clip"] = {
            "x": 0,
            "y": 0,
            "width": content_size.get("width", 1920),
            "height": content_size.get("height", 1080),
            "scale": 1,
        }
        params["captureBeyondViewport"] = True

    result = page.call("Page.captureScreenshot", params, timeout=30)
    out_path = path or f"/tmp/browser_screenshot_{int(time.time() * 1000)}.png"
    with open(out_path, "wb") as f:
        f.write(base64.b64decode(result.get("data", "")))
    return f"Screenshot saved: {out_path}"
