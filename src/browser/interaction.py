"""
Interaction - real input events against indexed elements and coordinates
========================================================================
Clicks go through Input.dispatchMouseEvent rather than el.click(): component
libraries that manage their own event layer often ignore programmatic DOM
clicks but react to genuine pointer events.

Typing is dual-path. Protocol-level insertion produces real input, and native
form controls also get their value assigned through the prototype setter
with input/change events, because reactive frameworks track value via
intercepted setters.
"""

import logging
import os
import time
from typing import Optional

from . import dom_scripts
from .element_index import ensure_indexed, resolve_index
from .errors import BridgeError, ErrorKind

logger = logging.getLogger(__name__)

FOCUS_SETTLE = 0.1
HOVER_SETTLE = 0.05
DRAG_STEPS = 10
DRAG_STEP_DELAY = 0.02
DEFAULT_FILE_SELECTOR = 'input[type="file"]'


# ── Primitives ─────────────────────────────────────────────────────

def mouse_move(page, x: float, y: float, button: Optional[str] = None):
    params = {"type": "mouseMoved", "x": x, "y": y}
    if button:
        params["button"] = button
    page.call("Input.dispatchMouseEvent", params)


def mouse_press_release(page, x: float, y: float, button: str = "left", click_count: int = 1):
    """One press + release pair at (x, y)."""
    opts = {"x": x, "y": y, "button": button, "clickCount": click_count}
    page.call("Input.dispatchMouseEvent", {"type": "mousePressed", **opts})
    page.call("Input.dispatchMouseEvent", {"type": "mouseReleased", **opts})


def key_press(page, key: str, code: Optional[str] = None, text: Optional[str] = None):
    down = {"type": "keyDown", "key": key}
    if code:
        down["code"] = code
    if text:
        down["text"] = text
        down["unmodifiedText"] = text
    up = {"type": "keyUp", "key": key}
    if code:
        up["code"] = code
    page.call("Input.dispatchKeyEvent", down)
    page.call("Input.dispatchKeyEvent", up)


def insert_text(page, text: str):
    """Input.insertText, or key-by-key dispatch where insertText is refused."""
    result = page.send("Input.insertText", {"text": text})
    if "error" not in result:
        return
    logger.info(f"Input.insertText failed ({result['error']}), typing key by key")
    for ch in text:
        key_press(page, ch, text=ch)


# ── Indexed element commands ───────────────────────────────────────

def click_index(page, index: int) -> str:
    ensure_indexed(page)
    target = resolve_index(page, index)
    mouse_press_release(page, target.x, target.y)
    logger.info(f"Clicked [{index}] at ({target.x:.0f}, {target.y:.0f})")
    return f"Clicked: {target.descriptor}"


def type_index(page, index: int, text: str) -> str:
    ensure_indexed(page)
    # Kind check must not scroll the page
    facts = resolve_index(page, index, scroll=False).facts
    if not facts.text_entry:
        raise BridgeError(
            f"Element [{index}] is a {facts.tag}, not a text input. Run elements to re-index.",
            kind=ErrorKind.WRONG_ELEMENT_KIND,
        )
    target = resolve_index(page, index)

    # Real click for focus; custom editors ignore el.focus()
    mouse_press_release(page, target.x, target.y)
    time.sleep(FOCUS_SETTLE)

    if facts.editable:
        _run_on_stamped(page, index, dom_scripts.select_contents_script(index))
        key_press(page, "Backspace", code="Backspace")
    else:
        _run_on_stamped(page, index, dom_scripts.clear_value_script(index))

    insert_text(page, text)

    if not facts.editable and facts.tag in ("input", "textarea"):
        _run_on_stamped(page, index, dom_scripts.set_value_script(index, text))

    kind = f"{facts.tag}, contenteditable" if facts.editable else facts.tag
    return f"Typed into [{index}] ({kind})"


def _run_on_stamped(page, index: int, script: str):
    """Evaluate a per-element script; False means the node is gone."""
    if not page.evaluate(script):
        logger.info(f"Element [{index}] vanished while typing")
        raise BridgeError(
            f"Element [{index}] not found. Run elements to re-index.",
            kind=ErrorKind.INDEX_NOT_FOUND,
        )


# ── File upload ────────────────────────────────────────────────────

def upload_file(page, file_path: str, selector: Optional[str] = None) -> str:
    """Put a local file straight into a file input's list, no picker dialog."""
    abs_path = os.path.abspath(file_path)
    if not os.path.isfile(abs_path):
        raise BridgeError(f"File not found: {abs_path}", kind=ErrorKind.FILE_NOT_FOUND)

    css = selector or DEFAULT_FILE_SELECTOR
    page.call("DOM.enable")
    doc = page.call("DOM.getDocument")
    root_id = doc.get("root", {}).get("nodeId", 0)
    node = page.call("DOM.querySelector", {"nodeId": root_id, "selector": css})
    node_id = node.get("nodeId", 0)
    if not node_id:
        raise BridgeError(f"No file input found matching: {css}", kind=ErrorKind.SELECTOR_NOT_FOUND)

    page.call("DOM.setFileInputFiles", {"nodeId": node_id, "files": [abs_path]})
    return f"Uploaded: {os.path.basename(abs_path)} → {css}"


# ── Coordinate input ───────────────────────────────────────────────
# For targets indexing can't reach (cross-origin iframes, canvas, captchas).

def click_xy(page, x: float, y: float, double: bool = False, right: bool = False) -> str:
    button = "right" if right else "left"

    # Hover first so hover-revealed controls exist before the press
    mouse_move(page, x, y)
    time.sleep(HOVER_SETTLE)
    mouse_press_release(page, x, y, button=button)
    if double:
        mouse_press_release(page, x, y, button=button, click_count=2)

    label = "Double-clicked" if double else "Right-clicked" if right else "Clicked"
    return f"{label} at ({_num(x)}, {_num(y)})"


def hover_xy(page, x: float, y: float) -> str:
    mouse_move(page, x, y)
    return f"Hovered at ({_num(x)}, {_num(y)})"


def drag_xy(page, sx: float, sy: float, ex: float, ey: float) -> str:
    mouse_move(page, sx, sy)
    time.sleep(HOVER_SETTLE)
    page.call("Input.dispatchMouseEvent",
              {"type": "mousePressed", "x": sx, "y": sy, "button": "left", "clickCount": 1})
    time.sleep(HOVER_SETTLE)
    for i in range(1, DRAG_STEPS + 1):
        mx = sx + (ex - sx) * i / DRAG_STEPS
        my = sy + (ey - sy) * i / DRAG_STEPS
        mouse_move(page, mx, my, button="left")
        time.sleep(DRAG_STEP_DELAY)
    page.call("Input.dispatchMouseEvent",
              {"type": "mouseReleased", "x": ex, "y": ey, "button": "left", "clickCount": 1})
    return f"Dragged from ({_num(sx)}, {_num(sy)}) to ({_num(ex)}, {_num(ey)})"


def _num(v: float) -> str:
    """Print 100.0 as 100, like the coordinates the caller typed."""
    return str(int(v)) if float(v).is_integer() else str(v)
