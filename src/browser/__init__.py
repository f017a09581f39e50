"""
Browser Bridge Module
=====================
Browser control via Chrome DevTools Protocol (CDP) for command-line agents.

- cdp_browser: tab discovery and the per-tab CDP session
- element_index: numbered, shadow-piercing index of interactive elements
- interaction: real mouse/keyboard input against indices or coordinates
- page_tools: navigation, text/html extraction, eval, screenshots
- commands / cli: the command table and argparse entry point
"""
