import html
import re
from typing import Protocol


class ContentRenderer(Protocol):
    def render(self, content: str) -> str: ...


class ParagraphRenderer:
    """Escapes author text and wraps blank-line separated blocks in ``<p>``."""

    _blank_lines = re.compile(r"\n\s*\n")

    def render(self, content: str) -> str:
        if not content or not content.strip():
            return ""
        blocks = [b.strip() for b in self._blank_lines.split(content.strip()) if b.strip()]
        return "".join(
            "<p>" + html.escape(block).replace("\n", "<br/>") + "</p>" for block in blocks
        )


default_renderer: ContentRenderer = ParagraphRenderer()


def render_content(content: str) -> str:
    return default_renderer.render(content)
