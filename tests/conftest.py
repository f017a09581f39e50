import itertools
import json
import re
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from src.browser.cdp_browser import CDPTab  # noqa: E402
from src.browser.errors import BridgeError, ErrorKind  # noqa: E402

_SCRIPT_RE = re.compile(r"^// bridge:(?P<name>[\w-]+)\n\(\(\) => \{\nconst ARGS = (?P<args>.*);\n")
_ids = itertools.count(1)


class FakeNode:
    """One element of the simulated page."""

    def __init__(self, tag: str, *, dialog: Optional[int] = None,
                 x: float = 10, y: float = 20, **facts):
        self.id = next(_ids)
        self.tag = tag
        self.dialog = dialog
        self.x = x
        self.y = y
        self.facts = {"tag": tag, "visible": True, **facts}
        self.stamp = None  # (index, generation)

    def page_facts(self) -> Dict[str, Any]:
        return dict(self.facts)

    def clone(self) -> "FakeNode":
        twin = FakeNode(self.tag, dialog=self.dialog, x=self.x, y=self.y)
        twin.facts = dict(self.facts)
        return twin


class FakePage:
    """
    Stands in for PageSession. Interprets the bridge's in-page scripts by name
    over a flat list of FakeNodes (the document order the in-page walker
    produces) and records every protocol call. The real scripts run in
    test_live_dom.py.
    """

    def __init__(self, nodes: List[FakeNode], dialogs: Optional[List[Dict[str, Any]]] = None,
                 scopes: Optional[Dict[str, List[FakeNode]]] = None):
        self.nodes = nodes
        self.dialogs = dialogs or []
        self.scopes = scopes or {}
        self.window: Dict[str, Any] = {}
        self.calls: List[tuple] = []
        self.scripts: List[tuple] = []
        self.fail_methods: Dict[str, str] = {}
        self.responses: Dict[str, Dict[str, Any]] = {}
        self.events: Dict[str, Dict[str, Any]] = {}
        self.scrolled: List[int] = []
        self.tab = CDPTab(tab_id="T1", url="https://example.test/", title="Example", ws_url="")

    # ── protocol ──

    def send(self, method: str, params: Optional[Dict] = None, timeout: float = None) -> Dict:
        self.calls.append((method, params or {}))
        if method in self.fail_methods:
            return {"error": self.fail_methods[method]}
        return dict(self.responses.get(method, {}))

    def call(self, method: str, params: Optional[Dict] = None, timeout: float = None) -> Dict:
        result = self.send(method, params, timeout)
        if "error" in result:
            raise BridgeError(f"Error: {method} failed: {result['error']}", kind=ErrorKind.PAGE_ERROR)
        return result

    def wait_for_event(self, method: str, timeout: float):
        return self.events.get(method)

    # ── helpers for assertions ──

    @property
    def mouse_events(self) -> List[Dict[str, Any]]:
        return [p for m, p in self.calls if m == "Input.dispatchMouseEvent"]

    @property
    def input_calls(self) -> List[tuple]:
        return [(m, p) for m, p in self.calls if m.startswith("Input.")]

    def script_names(self) -> List[str]:
        return [name for name, _ in self.scripts]

    def stamped(self) -> Dict[int, FakeNode]:
        gen = (self.window.get("__bridgeScan") or {}).get("generation")
        return {n.stamp[0]: n for n in self.nodes if n.stamp and n.stamp[1] == gen}

    def reload(self):
        """New document: fresh nodes, fresh window, no stamps."""
        self.nodes = [n.clone() for n in self.nodes]
        self.window = {}

    # ── in-page scripts ──

    def evaluate(self, expression: str, await_promise: bool = False) -> Any:
        m = _SCRIPT_RE.match(expression)
        assert m, f"unexpected expression: {expression[:60]}"
        name, args = m.group("name"), json.loads(m.group("args"))
        self.scripts.append((name, args))
        return getattr(self, "_js_" + name.replace("-", "_"))(**args)

    def _find_stamped(self, index):
        return self.stamped().get(index)

    def _js_collect(self, selector):
        if selector and selector not in self.scopes:
            return {"error": "Selector not found: " + selector}
        for n in self.nodes:
            n.stamp = None
        self.window.pop("__bridgeScan", None)
        candidates = self.scopes[selector] if selector else self.nodes
        self.window["__bridgeCandidates"] = list(candidates)
        return {
            "dialogs": [dict(d) for d in self.dialogs],
            "candidates": [
                dict(n.page_facts(), dialogIds=[] if n.dialog is None else [n.dialog])
                for n in candidates
            ],
        }

    def _js_stamp(self, positions, generation):
        nodes = self.window.pop("__bridgeCandidates", [])
        count = 0
        for idx, pos in enumerate(positions):
            nodes[pos].stamp = (idx, generation)
            count += 1
        self.window["__bridgeScan"] = {"generation": generation, "count": count}
        return count

    def _js_probe(self):
        return bool(self.window.get("__bridgeScan")) and bool(self.stamped())

    def _js_resolve(self, index, scroll):
        if scroll:
            self.scrolled.append(index)
        el = self._find_stamped(index)
        if el is None:
            return None
        return {"facts": el.page_facts(), "x": el.x, "y": el.y}

    def _js_clear_value(self, index):
        el = self._find_stamped(index)
        if el is None:
            return False
        el.facts["value"] = ""
        return True

    def _js_select_contents(self, index):
        return self._find_stamped(index) is not None

    def _js_set_value(self, index, text):
        el = self._find_stamped(index)
        if el is None or el.facts.get("editable") or el.tag not in ("input", "textarea"):
            return False
        el.facts["value"] = text
        return True

    def _js_html(self, selector, index, limit):
        el = self._find_stamped(index) if index is not None else self.scopes.get(selector, [None])[0]
        if el is None:
            return None
        return f"<{el.tag}>{el.facts.get('text', '')}</{el.tag}>"

    def _js_text(self, selector, limit):
        if selector and selector not in self.scopes:
            return {"error": "Selector not found: " + selector}
        nodes = self.scopes[selector] if selector else self.nodes
        return {"text": " ".join(n.facts.get("text", "") for n in nodes).strip() or "(empty page)"}

    def _js_rect(self, selector):
        if selector not in self.scopes:
            return None
        return {"x": 5, "y": 6, "width": 300, "height": 150, "cx": 155, "cy": 81}

    def _js_scroll(self, direction, amount):
        return amount


class FakeBrowser:
    """Stands in for CDPBrowser: one page, a fixed tab list."""

    def __init__(self, page: FakePage, tabs: Optional[List[CDPTab]] = None):
        from src.browser.config import BridgeConfig

        self.page = page
        self.tabs = tabs if tabs is not None else [page.tab]
        self.config = BridgeConfig()
        self.opened = 0
        self.closed: List[str] = []
        self.activated: List[str] = []

    def list_tabs(self):
        return list(self.tabs)

    def current_tab(self):
        if not self.tabs:
            raise BridgeError("No page tabs open", kind=ErrorKind.TARGET_NOT_FOUND)
        return self.tabs[0]

    def tab_by_index(self, index):
        if index < 0 or index >= len(self.tabs):
            raise BridgeError(f"Tab index {index} out of range (0-{len(self.tabs) - 1})",
                              kind=ErrorKind.TARGET_NOT_FOUND)
        return self.tabs[index]

    def new_tab(self, url="about:blank"):
        return "NEW1"

    def close_tab(self, tab):
        self.closed.append(tab.tab_id)

    def activate_tab(self, tab):
        self.activated.append(tab.tab_id)

    @contextmanager
    def open_page(self, tab=None):
        self.current_tab()
        self.opened += 1
        yield self.page


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    import src.browser.interaction as interaction

    monkeypatch.setattr(interaction.time, "sleep", lambda s: None)


@pytest.fixture
def shadow_page() -> FakePage:
    """A link and a submit button."""
    link = FakeNode("a", text="A", href="https://x/a", x=40, y=12)
    button = FakeNode("button", type="submit", text="Go", x=120, y=48)
    return FakePage([link, button])
