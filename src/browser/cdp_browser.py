"""
CDP Browser Client - Direct Chrome DevTools Protocol connection
===============================================================
Connects to an already-running Edge/Chrome via CDP. Nothing here launches
or manages the browser process.

Requirements:
- Browser started with --remote-debugging-port (endpoint in CDP_URL)
- websocket-client for the per-tab WebSocket

Features:
- Tab discovery, opening, closing and activation over the HTTP endpoint
- One correlated request/response channel per tab, with event queueing
- Page-scoped session with Runtime.evaluate helpers
"""

import json
import logging
import queue
import threading
import time
import urllib.error
import urllib.request
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

import websocket

from .config import BridgeConfig
from .errors import BridgeError, ErrorKind

logger = logging.getLogger(__name__)


@dataclass
class CDPTab:
    """Represents a browser tab discovered via CDP."""
    tab_id: str
    url: str
    title: str
    ws_url: str
    tab_type: str = "page"
    favicon_url: Optional[str] = None


class CDPConnection:
    """
    Low-level CDP WebSocket connection to a single tab.
    Replies are matched to requests by id; messages without an id are
    events and are queued for wait_for_event().
    """

    def __init__(self, ws_url: str, timeout: float = 15.0):
        self._ws_url = ws_url
        self._timeout = timeout
        self._ws = None
        self._msg_id = 0
        self._lock = threading.Lock()
        self._responses: Dict[int, Any] = {}
        self._events: "queue.Queue[Dict[str, Any]]" = queue.Queue()
        self._recv_thread: Optional[threading.Thread] = None
        self._running = False

    def connect(self) -> "CDPConnection":
        """Open the WebSocket connection to the tab."""
        try:
            self._ws = websocket.WebSocket()
            self._ws.settimeout(self._timeout)
            self._ws.connect(self._ws_url)
        except (websocket.WebSocketException, OSError) as e:
            self._ws = None
            raise BridgeError(f"CDP connection failed: {e}", kind=ErrorKind.TRANSPORT, cause=e)

        self._running = True
        self._recv_thread = threading.Thread(target=self._recv_loop, daemon=True)
        self._recv_thread.start()
        logger.info(f"CDP connected to {self._ws_url[:80]}")
        return self

    def disconnect(self):
        """Close the WebSocket connection."""
        self._running = False
        if self._ws:
            try:
                self._ws.close()
            except (websocket.WebSocketException, OSError) as e:
                logger.debug(f"CDP close error: {e}")
            logger.info("CDP connection closed")
        self._ws = None

    def __enter__(self) -> "CDPConnection":
        return self.connect()

    def __exit__(self, *exc):
        self.disconnect()

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._running

    def send(self, method: str, params: Optional[Dict] = None, timeout: float = None) -> Dict:
        """
        Send a CDP command and wait for the response.
        Returns the 'result' dict on success, or {'error': ...} on failure.
        """
        if not self.connected:
            return {"error": "Not connected"}

        timeout = timeout or self._timeout

        with self._lock:
            self._msg_id += 1
            msg_id = self._msg_id

        message = {"id": msg_id, "method": method}
        if params:
            message["params"] = params

        logger.debug(f"CDP -> {method} #{msg_id}")
        try:
            self._ws.send(json.dumps(message))
        except (websocket.WebSocketException, OSError) as e:
            return {"error": f"Send failed: {e}"}

        start = time.time()
        while (time.time() - start) < timeout:
            if msg_id in self._responses:
                resp = self._responses.pop(msg_id)
                if "error" in resp:
                    return {"error": resp["error"].get("message", str(resp["error"]))}
                return resp.get("result", {})
            if not self._running:
                return {"error": f"Connection closed while waiting for {method}"}
            time.sleep(0.02)

        return {"error": f"Timeout waiting for response to {method}"}

    def wait_for_event(self, method: str, timeout: float) -> Optional[Dict[str, Any]]:
        """Wait up to `timeout` seconds for an event; None if it never arrives."""
        deadline = time.time() + timeout
        while True:
            remaining = deadline - time.time()
            if remaining <= 0:
                return None
            try:
                event = self._events.get(timeout=remaining)
            except queue.Empty:
                return None
            if event.get("method") == method:
                return event

    def _recv_loop(self):
        """Background thread to receive WebSocket messages."""
        while self._running and self._ws:
            try:
                raw = self._ws.recv()
                if not raw:
                    continue
                data = json.loads(raw)
                if "id" in data:
                    self._responses[data["id"]] = data
                else:
                    self._events.put(data)
            except websocket.WebSocketTimeoutException:
                continue
            except (websocket.WebSocketException, OSError, ValueError) as e:
                if self._running:
                    logger.debug(f"CDP recv error: {e}")
                break

        self._running = False


class PageSession:
    """A CDP connection bound to one page tab."""

    def __init__(self, conn: CDPConnection, tab: CDPTab):
        self.conn = conn
        self.tab = tab

    def send(self, method: str, params: Optional[Dict] = None, timeout: float = None) -> Dict:
        return self.conn.send(method, params, timeout=timeout)

    def call(self, method: str, params: Optional[Dict] = None, timeout: float = None) -> Dict:
        """Like send(), but a protocol error raises BridgeError."""
        result = self.conn.send(method, params, timeout=timeout)
        if "error" in result:
            raise BridgeError(f"Error: {method} failed: {result['error']}", kind=ErrorKind.PAGE_ERROR)
        return result

    def wait_for_event(self, method: str, timeout: float) -> Optional[Dict[str, Any]]:
        return self.conn.wait_for_event(method, timeout)

    def evaluate(self, expression: str, await_promise: bool = False) -> Any:
        """Execute JavaScript in the page context and return its JSON value."""
        params = {"expression": expression, "returnByValue": True}
        if await_promise:
            params["awaitPromise"] = True
        result = self.conn.send("Runtime.evaluate", params)
        if "error" in result:
            raise BridgeError(f"Error: {result['error']}", kind=ErrorKind.PAGE_ERROR)

        exception = result.get("exceptionDetails")
        if exception:
            desc = (exception.get("exception") or {}).get("description") or exception.get("text", "")
            raise BridgeError(f"Error: {desc}", kind=ErrorKind.PAGE_ERROR)

        remote_obj = result.get("result", {})
        if "value" not in remote_obj and remote_obj.get("type") != "undefined":
            # Non-serializable objects only carry a description.
            return remote_obj.get("description")
        return remote_obj.get("value")


class CDPBrowser:
    """
    High-level CDP browser controller.
    Discovers tabs via HTTP, connects to individual tabs via WebSocket.
    """

    def __init__(self, config: Optional[BridgeConfig] = None):
        self.config = config or BridgeConfig.from_env()
        self._base_url = self.config.cdp_url

    # ── HTTP Endpoint ──────────────────────────────────────────────

    def _http_json(self, path: str, method: str = "GET") -> Any:
        req = urllib.request.Request(f"{self._base_url}{path}", method=method)
        try:
            with urllib.request.urlopen(req, timeout=5) as resp:
                body = resp.read().decode()
        except (urllib.error.URLError, OSError) as e:
            raise BridgeError(
                f"Browser not reachable at {self._base_url}: {e}",
                kind=ErrorKind.TRANSPORT,
                cause=e,
            )
        try:
            return json.loads(body) if body.strip() else {}
        except ValueError:
            # /json/close and /json/activate answer with plain text
            return {"message": body.strip()}

    # ── Tab Discovery ──────────────────────────────────────────────

    def list_tabs(self) -> List[CDPTab]:
        """Discover all open page tabs via the CDP HTTP endpoint."""
        data = self._http_json("/json/list")
        tabs = []
        for entry in data:
            if entry.get("type") != "page":
                continue
            tabs.append(CDPTab(
                tab_id=entry.get("id", ""),
                url=entry.get("url", ""),
                title=entry.get("title", ""),
                ws_url=entry.get("webSocketDebuggerUrl", ""),
                tab_type=entry.get("type", "page"),
                favicon_url=entry.get("faviconUrl"),
            ))
        return tabs

    def current_tab(self) -> CDPTab:
        """The "current" tab is the first page target."""
        tabs = self.list_tabs()
        if not tabs:
            raise BridgeError("No page tabs open", kind=ErrorKind.TARGET_NOT_FOUND)
        return tabs[0]

    def tab_by_index(self, index: int) -> CDPTab:
        tabs = self.list_tabs()
        if index < 0 or index >= len(tabs):
            raise BridgeError(
                f"Tab index {index} out of range (0-{len(tabs) - 1})",
                kind=ErrorKind.TARGET_NOT_FOUND,
            )
        return tabs[index]

    # ── Tab Management ─────────────────────────────────────────────

    def new_tab(self, url: str = "about:blank") -> str:
        """Open a new tab and return its target id."""
        data = self._http_json(f"/json/new?{url}", method="PUT")
        return data.get("id", "")

    def close_tab(self, tab: CDPTab):
        self._http_json(f"/json/close/{tab.tab_id}")

    def activate_tab(self, tab: CDPTab):
        self._http_json(f"/json/activate/{tab.tab_id}")

    # ── Connection Management ──────────────────────────────────────

    @contextmanager
    def open_page(self, tab: Optional[CDPTab] = None) -> Iterator[PageSession]:
        """Connect to a tab (default: current tab) for the duration of one command."""
        tab = tab or self.current_tab()
        ws_url = self.config.page_ws_url(tab.tab_id)
        conn = CDPConnection(ws_url, timeout=self.config.timeout)
        conn.connect()
        try:
            yield PageSession(conn, tab)
        finally:
            conn.disconnect()
