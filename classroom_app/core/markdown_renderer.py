"""Markdown rendering for announcement bodies.

Faculty write announcements in markdown. The API returns both the raw text
and an HTML fragment so clients do not each need a markdown parser. Raw HTML
in the source is escaped rather than passed through.
"""

from __future__ import annotations

from markdown_it import MarkdownIt


class AnnouncementRenderer:
    """Turns announcement markdown into an HTML fragment."""

    def __init__(self) -> None:
        self._markdown = MarkdownIt("commonmark", {"html": False}).enable(["table", "strikethrough"])

    def render_fragment(self, content: str) -> str:
        # Blank bodies render to nothing rather than an empty paragraph.
        text = content.strip()
        if not text:
            return ""
        return self._markdown.render(text)


# One shared instance; rendering does not mutate parser state.
renderer = AnnouncementRenderer()
