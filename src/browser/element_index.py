"""
Element Index - numbered view of the page's interactive elements
================================================================
A scan walks the live DOM (piercing every shadow root), classifies each
candidate, puts controls of the topmost open dialog first, drops duplicates
and stamps each survivor with its 0-based index. Click/type/html commands
resolve those indices back to nodes.

Stamps carry the scan's generation token, and the page remembers the current
generation on `window`. A reload or navigation replaces `window`, so the old
indices stop resolving instead of silently pointing at another node.

The split of work:
- in page (dom_scripts): shadow-piercing walk, geometry, dialog containment
- here: labels, descriptions, dialog choice, ordering, de-duplication
"""

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from . import dom_scripts
from .errors import BridgeError, ErrorKind

logger = logging.getLogger(__name__)

MAX_DESCRIPTION = 120
MAX_VALUE = 40
MAX_HREF = 60

FORM_CONTROLS = ("input", "select", "textarea")


@dataclass
class ElementFacts:
    """Raw attributes of one candidate node, as reported by the page."""
    tag: str
    type: str = ""
    role: str = ""
    text: str = ""
    aria_label: str = ""
    placeholder: str = ""
    name: str = ""
    value: str = ""
    href: str = ""
    disabled: bool = False
    editable: bool = False
    visible: bool = True
    dialog_ids: List[int] = field(default_factory=list)

    @classmethod
    def from_page(cls, data: Dict[str, Any]) -> "ElementFacts":
        return cls(
            tag=(data.get("tag") or "").lower(),
            type=data.get("type") or "",
            role=data.get("role") or "",
            text=data.get("text") or "",
            aria_label=data.get("ariaLabel") or "",
            placeholder=data.get("placeholder") or "",
            name=data.get("name") or "",
            value=data.get("value") or "",
            href=data.get("href") or "",
            disabled=bool(data.get("disabled")),
            editable=bool(data.get("editable")),
            visible=data.get("visible", True) is not False,
            dialog_ids=list(data.get("dialogIds") or []),
        )

    @property
    def text_entry(self) -> bool:
        return self.tag in ("input", "textarea") or self.editable or self.role == "textbox"


@dataclass
class DialogFacts:
    role: str
    aria_modal: bool = False
    rendered: bool = True

    @classmethod
    def from_page(cls, data: Dict[str, Any]) -> "DialogFacts":
        return cls(
            role=data.get("role") or "",
            aria_modal=bool(data.get("ariaModal")),
            rendered=bool(data.get("rendered")),
        )


@dataclass
class ElementDescriptor:
    label: str
    description: str

    def __str__(self):
        return f"({self.label}) {self.description}".rstrip()


@dataclass
class ScanResult:
    """Ordered descriptors of one scan; position == index."""
    descriptors: List[ElementDescriptor]
    generation: str

    def __len__(self):
        return len(self.descriptors)

    def format(self) -> str:
        if not self.descriptors:
            return "No interactive elements found."
        return "\n".join(f"[{i}] {d}" for i, d in enumerate(self.descriptors))


@dataclass
class ResolvedElement:
    index: int
    facts: ElementFacts
    x: float
    y: float

    @property
    def descriptor(self) -> ElementDescriptor:
        return descriptor_for(self.facts)


# ── Classification ─────────────────────────────────────────────────

def classify_label(facts: ElementFacts) -> str:
    tag, role = facts.tag, facts.role
    if tag == "a":
        label = "link"
    elif tag == "button" or role == "button":
        label = "button"
    elif tag == "input":
        label = f"input:{facts.type}" if facts.type else "input"
    elif tag in ("select", "textarea"):
        label = tag
    elif role == "textbox":
        label = "textbox"
    elif role:
        label = role
    else:
        label = tag
    if facts.disabled:
        label += ":disabled"
    return label


def describe(facts: ElementFacts) -> str:
    """Untruncated description; callers cut it to MAX_DESCRIPTION for display."""
    text = re.sub(r"\s+", " ", facts.text.strip())
    desc = facts.aria_label or text or facts.placeholder or facts.name or ""

    value = facts.value[:MAX_VALUE] if facts.tag in FORM_CONTROLS else ""
    if value and value not in desc:
        desc = f"{desc} [{value}]" if desc else value

    href = facts.href
    if facts.tag == "a" and href and not href.startswith("javascript:"):
        short = href[:MAX_HREF - 3] + "..." if len(href) > MAX_HREF else href
        desc = f"{desc} → {short}" if desc else short
    return desc


def descriptor_for(facts: ElementFacts) -> ElementDescriptor:
    return ElementDescriptor(classify_label(facts), describe(facts)[:MAX_DESCRIPTION])


# ── Modal scope ────────────────────────────────────────────────────

def resolve_top_dialog(dialogs: List[DialogFacts]) -> Optional[int]:
    """Position of the active dialog, or None.

    role=dialog / aria-modal wins over role=presentation, which is often just
    an empty backdrop; among equals the last in document order is on top.
    """
    rendered = [i for i, d in enumerate(dialogs) if d.rendered]
    real = [i for i in rendered if dialogs[i].role == "dialog" or dialogs[i].aria_modal]
    if real:
        return real[-1]
    if rendered:
        return rendered[-1]
    return None


def build_index(candidates: List[ElementFacts],
                dialogs: List[DialogFacts]) -> List[Tuple[int, ElementDescriptor]]:
    """Return (candidate position, descriptor) pairs in final index order."""
    top = resolve_top_dialog(dialogs)

    def in_dialog(facts: ElementFacts) -> bool:
        return top is not None and top in facts.dialog_ids

    ordered = sorted(enumerate(candidates), key=lambda pair: 0 if in_dialog(pair[1]) else 1)

    seen = set()
    entries = []
    for pos, facts in ordered:
        if not facts.visible:
            continue
        label = classify_label(facts)
        desc = describe(facts)
        key = ("modal" if in_dialog(facts) else "page", label, desc)
        if key in seen:
            continue
        seen.add(key)
        entries.append((pos, ElementDescriptor(label, desc[:MAX_DESCRIPTION])))
    return entries


# ── Scan / resolve ─────────────────────────────────────────────────

def scan(page, selector: Optional[str] = None) -> ScanResult:
    """Run one scan generation: clear stamps, classify, stamp survivors."""
    data = page.evaluate(dom_scripts.collect_script(selector))
    if not isinstance(data, dict):
        raise BridgeError("Error: element scan returned no data", kind=ErrorKind.PAGE_ERROR)
    if data.get("error"):
        raise BridgeError(data["error"], kind=ErrorKind.SELECTOR_NOT_FOUND)

    candidates = [ElementFacts.from_page(c) for c in data.get("candidates", [])]
    dialogs = [DialogFacts.from_page(d) for d in data.get("dialogs", [])]
    entries = build_index(candidates, dialogs)

    generation = uuid.uuid4().hex[:12]
    stamped = page.evaluate(dom_scripts.stamp_script([pos for pos, _ in entries], generation))
    if stamped != len(entries):
        logger.warning(f"Stamped {stamped} of {len(entries)} elements; page changed during scan")

    logger.info(f"Indexed {len(entries)} of {len(candidates)} candidates (generation {generation})")
    return ScanResult([desc for _, desc in entries], generation)


def has_stamps(page) -> bool:
    return bool(page.evaluate(dom_scripts.probe_script()))


def ensure_indexed(page) -> bool:
    """Scan the whole page if it carries no current stamps. True if it scanned."""
    if has_stamps(page):
        return False
    logger.info("No element index on page, scanning")
    scan(page)
    return True


def resolve_index(page, index: int, scroll: bool = True) -> ResolvedElement:
    data = page.evaluate(dom_scripts.resolve_script(index, scroll))
    if not data:
        logger.info(f"Index {index} has no stamped element")
        raise BridgeError(
            f"Element [{index}] not found. Run elements to re-index.",
            kind=ErrorKind.INDEX_NOT_FOUND,
        )
    return ResolvedElement(
        index=index,
        facts=ElementFacts.from_page(data.get("facts") or {}),
        x=float(data.get("x", 0)),
        y=float(data.get("y", 0)),
    )
