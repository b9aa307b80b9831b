"""
taskvault: a text-backed task database over a vault of Markdown notes.

Checkbox list items are parsed into Task trees, indexed per document, and
edited through minimal line rewrites that can be undone.
"""

__version__ = "0.1.0"
