"""
In-page scripts for element indexing
====================================
Every script is a self-contained IIFE evaluated with returnByValue. The first
line names the script (`// bridge:<name>`) and the arguments are embedded as a
single JSON object (`const ARGS = {...};`), so nothing from the caller is ever
spliced into JavaScript source.

Shadow roots are walked with an explicit worklist instead of recursion, so
pathological nesting can't blow the page's call stack.
"""

import json

STAMP_ATTR = "data-bjs-idx"
GEN_ATTR = "data-bjs-gen"

INTERACTIVE_SELECTOR = (
    'a[href], button, input, select, textarea, [role="button"], [role="link"], '
    '[role="tab"], [role="menuitem"], [role="checkbox"], [role="radio"], '
    '[role="textbox"], [onclick], [tabindex]:not([tabindex="-1"]), details > summary, '
    '[contenteditable="true"]'
)

DIALOG_SELECTOR = '[role=dialog], [role=presentation], [aria-modal=true]'

_HELPERS = f"""
const STAMP = {json.dumps(STAMP_ATTR)};
const GEN = {json.dumps(GEN_ATTR)};

// Pre-order list of `root` and every shadow root reachable below it.
function allRoots(root) {{
  const roots = [];
  const stack = [root];
  while (stack.length) {{
    const r = stack.pop();
    roots.push(r);
    const hosts = [...r.querySelectorAll('*')].filter(el => el.shadowRoot);
    if (r === root && r.shadowRoot) hosts.unshift(r);
    for (let i = hosts.length - 1; i >= 0; i--) stack.push(hosts[i].shadowRoot);
  }}
  return roots;
}}

function deepQueryAll(root, selectors) {{
  const out = [];
  for (const r of allRoots(root)) {{
    try {{ out.push(...r.querySelectorAll(selectors)); }} catch (e) {{}}
  }}
  return out;
}}

function deepQuery(root, selector) {{
  for (const r of allRoots(root)) {{
    const found = r.querySelector(selector);
    if (found) return found;
  }}
  return null;
}}

// contains() that crosses shadow-host boundaries
function composedContains(host, el) {{
  let n = el;
  while (n) {{
    if (n === host) return true;
    n = n.parentNode || (n.nodeType === 11 ? n.host : null);
  }}
  return false;
}}

function isRendered(el) {{
  return el.offsetParent !== null || getComputedStyle(el).position === 'fixed';
}}

function findStamped(idx) {{
  const scan = window.__bridgeScan;
  if (!scan) return null;
  return deepQuery(document, '[' + STAMP + '="' + idx + '"][' + GEN + '="' + scan.generation + '"]');
}}

function facts(el) {{
  const tag = el.tagName.toLowerCase();
  const formControl = tag === 'input' || tag === 'select' || tag === 'textarea';
  return {{
    tag,
    type: typeof el.type === 'string' ? el.type : '',
    role: el.getAttribute('role') || '',
    text: (el.textContent || '').trim().slice(0, 80),
    ariaLabel: el.getAttribute('aria-label') || '',
    placeholder: typeof el.placeholder === 'string' ? el.placeholder : '',
    name: typeof el.name === 'string' ? el.name : '',
    value: formControl ? String(el.value || '').slice(0, 200) : '',
    href: typeof el.href === 'string' ? el.href : '',
    disabled: !!el.disabled || el.getAttribute('aria-disabled') === 'true',
    editable: !!el.isContentEditable,
    visible: tag === 'body' || isRendered(el),
  }};
}}
"""


def _script(name: str, body: str, **args) -> str:
    return (
        f"// bridge:{name}\n"
        "(() => {\n"
        f"const ARGS = {json.dumps(args)};\n"
        f"{_HELPERS}\n"
        f"{body}\n"
        "})()"
    )


def collect_script(selector=None) -> str:
    """Clear old stamps, then gather candidate facts and dialog facts.

    Candidate nodes are parked in window.__bridgeCandidates until
    stamp_script() picks the survivors.
    """
    return _script("collect", f"""
const sel = ARGS.selector;
const root = sel ? document.querySelector(sel) : document;
if (!root) return {{ error: 'Selector not found: ' + sel }};

for (const el of deepQueryAll(document, '[' + STAMP + '], [' + GEN + ']')) {{
  el.removeAttribute(STAMP);
  el.removeAttribute(GEN);
}}
delete window.__bridgeScan;

const dialogs = deepQueryAll(document, {json.dumps(DIALOG_SELECTOR)});
const nodes = deepQueryAll(root, {json.dumps(INTERACTIVE_SELECTOR)});
window.__bridgeCandidates = nodes;

return {{
  dialogs: dialogs.map(d => ({{
    role: d.getAttribute('role') || '',
    ariaModal: d.getAttribute('aria-modal') === 'true',
    rendered: isRendered(d),
  }})),
  candidates: nodes.map(el => Object.assign(facts(el), {{
    dialogIds: dialogs.map((d, i) => composedContains(d, el) ? i : -1).filter(i => i >= 0),
  }})),
}};
""", selector=selector)


def stamp_script(positions, generation: str) -> str:
    return _script("stamp", """
const nodes = window.__bridgeCandidates || [];
let count = 0;
ARGS.positions.forEach((pos, idx) => {
  const el = nodes[pos];
  if (!el) return;
  el.setAttribute(STAMP, String(idx));
  el.setAttribute(GEN, ARGS.generation);
  count++;
});
delete window.__bridgeCandidates;
window.__bridgeScan = { generation: ARGS.generation, count };
return count;
""", positions=list(positions), generation=generation)


def probe_script() -> str:
    """True when the current window has a scan and a node carries its generation."""
    return _script("probe", """
const scan = window.__bridgeScan;
if (!scan) return false;
return !!deepQuery(document, '[' + GEN + '="' + scan.generation + '"]');
""")


def resolve_script(index: int, scroll: bool = True) -> str:
    return _script("resolve", """
const el = findStamped(ARGS.index);
if (!el) return null;
if (ARGS.scroll) el.scrollIntoView({ block: 'center' });
const rect = el.getBoundingClientRect();
return { facts: facts(el), x: rect.x + rect.width / 2, y: rect.y + rect.height / 2 };
""", index=index, scroll=scroll)


def clear_value_script(index: int) -> str:
    return _script("clear-value", """
const el = findStamped(ARGS.index);
if (!el) return false;
el.value = '';
return true;
""", index=index)


def select_contents_script(index: int) -> str:
    return _script("select-contents", """
const el = findStamped(ARGS.index);
if (!el) return false;
const range = document.createRange();
range.selectNodeContents(el);
const selection = window.getSelection();
selection.removeAllRanges();
selection.addRange(range);
return true;
""", index=index)


def set_value_script(index: int, text: str) -> str:
    """Assign through the native prototype setter so framework-patched
    value trackers see the change, then fire input/change."""
    return _script("set-value", """
const el = findStamped(ARGS.index);
if (!el || el.isContentEditable) return false;
const proto = el instanceof HTMLTextAreaElement ? HTMLTextAreaElement.prototype
  : el instanceof HTMLInputElement ? HTMLInputElement.prototype : null;
if (!proto) return false;
const setter = Object.getOwnPropertyDescriptor(proto, 'value')?.set;
if (setter) setter.call(el, ARGS.text);
else el.value = ARGS.text;
el.dispatchEvent(new Event('input', { bubbles: true }));
el.dispatchEvent(new Event('change', { bubbles: true }));
return true;
""", index=index, text=text)


def html_script(selector=None, index=None, limit: int = 10000) -> str:
    return _script("html", """
const el = ARGS.index !== null ? findStamped(ARGS.index) : document.querySelector(ARGS.selector);
if (!el) return null;
const html = el.outerHTML;
return html.length > ARGS.limit ? html.slice(0, ARGS.limit) + '... (truncated)' : html;
""", selector=selector, index=index, limit=limit)


def text_script(selector=None, limit: int = 8000) -> str:
    return _script("text", """
const sel = ARGS.selector;
const root = sel ? document.querySelector(sel) : document.body;
if (!root) return { error: 'Selector not found: ' + sel };

const SKIP = ['SCRIPT', 'STYLE', 'NOSCRIPT', 'SVG'];
const chunks = [];
let total = 0;
const stack = [root];
while (stack.length && total < ARGS.limit) {
  const node = stack.pop();
  if (node.nodeType === 3) {
    const t = node.textContent.trim();
    if (!t) continue;
    const parent = node.parentElement;
    if (parent) {
      if (SKIP.includes(parent.tagName.toUpperCase())) continue;
      if (!isRendered(parent)) continue;
    }
    chunks.push(t);
    total += t.length;
    continue;
  }
  if (node.nodeType !== 1 && node.nodeType !== 9 && node.nodeType !== 11) continue;
  const light = [...node.childNodes];
  for (let i = light.length - 1; i >= 0; i--) stack.push(light[i]);
  if (node.shadowRoot) {
    const shadow = [...node.shadowRoot.childNodes];
    for (let i = shadow.length - 1; i >= 0; i--) stack.push(shadow[i]);
  }
}
let text = chunks.join(' ').replace(/\\s+/g, ' ').trim();
if (text.length > ARGS.limit) text = text.slice(0, ARGS.limit) + '... (truncated)';
return { text: text || '(empty page)' };
""", selector=selector, limit=limit)


def rect_script(selector: str) -> str:
    return _script("rect", """
const el = document.querySelector(ARGS.selector);
if (!el) return null;
el.scrollIntoView({ block: 'center' });
const r = el.getBoundingClientRect();
return {
  x: Math.round(r.x), y: Math.round(r.y),
  width: Math.round(r.width), height: Math.round(r.height),
  cx: Math.round(r.x + r.width / 2), cy: Math.round(r.y + r.height / 2),
};
""", selector=selector)


def scroll_script(direction: str, amount: int) -> str:
    return _script("scroll", """
switch (ARGS.direction) {
  case 'up': window.scrollBy(0, -ARGS.amount); break;
  case 'down': window.scrollBy(0, ARGS.amount); break;
  case 'top': window.scrollTo(0, 0); break;
  case 'bottom': window.scrollTo(0, document.body.scrollHeight); break;
}
return Math.round(window.scrollY);
""", direction=direction, amount=amount)
