import os

import pytest

from src.browser import interaction
from src.browser.element_index import scan
from src.browser.errors import BridgeError, ErrorKind

from conftest import FakeNode, FakePage


def _types(events):
    return [e["type"] for e in events]


# ── click ──

def test_click_without_prior_scan_auto_indexes() -> None:
    page = FakePage([FakeNode("button", text="Go", x=50, y=60)])
    assert interaction.click_index(page, 0) == "Clicked: (button) Go"
    assert page.script_names()[:3] == ["probe", "collect", "stamp"]
    assert page.mouse_events == [
        {"type": "mousePressed", "x": 50, "y": 60, "button": "left", "clickCount": 1},
        {"type": "mouseReleased", "x": 50, "y": 60, "button": "left", "clickCount": 1},
    ]


def test_click_uses_existing_index(shadow_page) -> None:
    scan(shadow_page)
    assert interaction.click_index(shadow_page, 1) == "Clicked: (button) Go"
    assert shadow_page.script_names().count("collect") == 1
    assert _types(shadow_page.mouse_events) == ["mousePressed", "mouseReleased"]
    assert shadow_page.mouse_events[0]["x"] == 120 and shadow_page.mouse_events[0]["y"] == 48


def test_click_unknown_index_sends_no_input(shadow_page) -> None:
    with pytest.raises(BridgeError) as exc:
        interaction.click_index(shadow_page, 9)
    assert exc.value.kind == ErrorKind.INDEX_NOT_FOUND
    assert shadow_page.input_calls == []


# ── type ──

def test_type_on_button_is_rejected_without_input(shadow_page) -> None:
    scan(shadow_page)
    with pytest.raises(BridgeError) as exc:
        interaction.type_index(shadow_page, 1, "hi")
    assert exc.value.kind == ErrorKind.WRONG_ELEMENT_KIND
    assert str(exc.value) == "Element [1] is a button, not a text input. Run elements to re-index."
    assert shadow_page.input_calls == []


def test_rejected_type_does_not_scroll(shadow_page) -> None:
    scan(shadow_page)
    with pytest.raises(BridgeError):
        interaction.type_index(shadow_page, 1, "hi")
    assert [args["scroll"] for name, args in shadow_page.scripts if name == "resolve"] == [False]
    assert shadow_page.scrolled == []


def test_type_scrolls_only_after_kind_check() -> None:
    page = FakePage([FakeNode("input", type="text", name="q")])
    scan(page)
    interaction.type_index(page, 0, "x")
    assert [args["scroll"] for name, args in page.scripts if name == "resolve"] == [False, True]
    assert page.scrolled == [0]


def test_type_reports_node_lost_before_clear() -> None:
    page = FakePage([FakeNode("input", type="text", name="q")])
    scan(page)
    page._js_clear_value = lambda index: False

    with pytest.raises(BridgeError) as exc:
        interaction.type_index(page, 0, "x")
    assert exc.value.kind == ErrorKind.INDEX_NOT_FOUND
    assert "Input.insertText" not in [m for m, _ in page.input_calls]


def test_type_reports_node_lost_before_value_set() -> None:
    page = FakePage([FakeNode("textarea", placeholder="Note")])
    scan(page)
    page._js_set_value = lambda index, text: False

    with pytest.raises(BridgeError) as exc:
        interaction.type_index(page, 0, "x")
    assert str(exc.value) == "Element [0] not found. Run elements to re-index."


def test_type_into_input_uses_both_paths() -> None:
    field = FakeNode("input", type="text", placeholder="Email", value="old", x=30, y=40)
    page = FakePage([field])
    scan(page)

    assert interaction.type_index(page, 0, "me@x.io") == "Typed into [0] (input)"

    assert [m for m, _ in page.input_calls] == [
        "Input.dispatchMouseEvent",
        "Input.dispatchMouseEvent",
        "Input.insertText",
    ]
    assert page.input_calls[-1][1] == {"text": "me@x.io"}
    names = page.script_names()
    assert names.index("clear-value") < names.index("set-value")
    assert ("set-value", {"index": 0, "text": "me@x.io"}) in page.scripts
    assert field.facts["value"] == "me@x.io"


def test_type_into_contenteditable_selects_and_deletes() -> None:
    editor = FakeNode("div", editable=True, text="draft", **{"contenteditable": "true"})
    page = FakePage([editor])
    scan(page)

    assert interaction.type_index(page, 0, "hello") == "Typed into [0] (div, contenteditable)"

    names = page.script_names()
    assert "select-contents" in names
    assert "clear-value" not in names and "set-value" not in names
    keys = [p for m, p in page.calls if m == "Input.dispatchKeyEvent"]
    assert [(k["type"], k["key"]) for k in keys] == [("keyDown", "Backspace"), ("keyUp", "Backspace")]


def test_type_falls_back_to_key_events() -> None:
    page = FakePage([FakeNode("textarea", placeholder="Message")])
    page.fail_methods["Input.insertText"] = "not supported"
    scan(page)

    interaction.type_index(page, 0, "ok")

    keys = [p for m, p in page.calls if m == "Input.dispatchKeyEvent"]
    assert [(k["type"], k["key"]) for k in keys] == [
        ("keyDown", "o"), ("keyUp", "o"), ("keyDown", "k"), ("keyUp", "k"),
    ]
    assert keys[0]["text"] == "o"


def test_type_accepts_role_textbox() -> None:
    page = FakePage([FakeNode("div", role="textbox", text="")])
    assert interaction.type_index(page, 0, "x") == "Typed into [0] (div)"


# ── upload ──

def test_upload_missing_file(tmp_path) -> None:
    page = FakePage([])
    with pytest.raises(BridgeError) as exc:
        interaction.upload_file(page, str(tmp_path / "nope.pdf"))
    assert exc.value.kind == ErrorKind.FILE_NOT_FOUND
    assert page.calls == []


def test_upload_without_file_input(tmp_path) -> None:
    doc = tmp_path / "cv.pdf"
    doc.write_bytes(b"%PDF")
    page = FakePage([])
    page.responses["DOM.getDocument"] = {"root": {"nodeId": 1}}
    page.responses["DOM.querySelector"] = {"nodeId": 0}
    with pytest.raises(BridgeError) as exc:
        interaction.upload_file(page, str(doc))
    assert exc.value.kind == ErrorKind.SELECTOR_NOT_FOUND
    assert str(exc.value) == 'No file input found matching: input[type="file"]'


def test_upload_sets_absolute_path(tmp_path, monkeypatch) -> None:
    doc = tmp_path / "cv.pdf"
    doc.write_bytes(b"%PDF")
    monkeypatch.chdir(tmp_path)
    page = FakePage([])
    page.responses["DOM.getDocument"] = {"root": {"nodeId": 1}}
    page.responses["DOM.querySelector"] = {"nodeId": 42}

    assert interaction.upload_file(page, "cv.pdf", "#resume") == "Uploaded: cv.pdf → #resume"
    assert ("DOM.querySelector", {"nodeId": 1, "selector": "#resume"}) in page.calls
    assert page.calls[-1] == ("DOM.setFileInputFiles", {"nodeId": 42, "files": [os.path.abspath("cv.pdf")]})


# ── coordinates ──

def test_click_xy_moves_then_clicks() -> None:
    page = FakePage([])
    assert interaction.click_xy(page, 100.0, 200.5) == "Clicked at (100, 200.5)"
    assert _types(page.mouse_events) == ["mouseMoved", "mousePressed", "mouseReleased"]


def test_double_and_right_click_xy() -> None:
    page = FakePage([])
    assert interaction.click_xy(page, 1, 2, double=True) == "Double-clicked at (1, 2)"
    counts = [e.get("clickCount") for e in page.mouse_events if e["type"] != "mouseMoved"]
    assert counts == [1, 1, 2, 2]

    page = FakePage([])
    assert interaction.click_xy(page, 1, 2, right=True) == "Right-clicked at (1, 2)"
    assert page.mouse_events[1]["button"] == "right"


def test_hover_xy() -> None:
    page = FakePage([])
    assert interaction.hover_xy(page, 5, 6) == "Hovered at (5, 6)"
    assert page.mouse_events == [{"type": "mouseMoved", "x": 5, "y": 6}]


def test_drag_xy_interpolates_moves() -> None:
    page = FakePage([])
    assert interaction.drag_xy(page, 0, 0, 100, 50) == "Dragged from (0, 0) to (100, 50)"
    events = page.mouse_events
    assert _types(events) == ["mouseMoved", "mousePressed"] + ["mouseMoved"] * 10 + ["mouseReleased"]
    steps = [(e["x"], e["y"]) for e in events[2:12]]
    assert steps[0] == (10, 5)
    assert steps[-1] == (100, 50)
    assert events[-1]["x"] == 100 and events[-1]["y"] == 50
