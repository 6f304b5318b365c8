import html
import re
from urllib.parse import quote

import config
from models.title import Title

AUTOCOMMENT_PATTERN = re.compile(r"/\*\s*(.*?)\s*\*/")
LINK_PATTERN = re.compile(r"\[\[([^\[\]|]+)(?:\|([^\[\]]*))?\]\]")


def section_anchor(section: str) -> str:
    return quote(section.replace(" ", "_"), safe="")


def format_comment(comment: str, title: Title) -> str:
    """Render an edit summary as HTML.

    Handles the two constructs edit summaries commonly carry: section
    autocomments (/* Section */) and internal links ([[Target|label]])."""
    escaped = html.escape(comment, quote=False)

    def autocomment(match: re.Match) -> str:
        section = match.group(1)
        if not section:
            return match.group(0)
        href = html.escape(f"{title.url}#{section_anchor(html.unescape(section))}")
        return (
            f'<span dir="auto"><span class="autocomment">'
            f'<a href="{href}" title="{html.escape(title.prefixed_text)}">→{section}</a>'
            f"</span></span>"
        )

    def link(match: re.Match) -> str:
        target = html.unescape(match.group(1)).strip()
        label = match.group(2) if match.group(2) is not None else match.group(1)
        href = config.ARTICLE_PATH + quote(target.replace(" ", "_"), safe="/:#")
        return f'<a href="{html.escape(href)}" title="{html.escape(target)}">{label}</a>'

    formatted = AUTOCOMMENT_PATTERN.sub(autocomment, escaped)
    return LINK_PATTERN.sub(link, formatted)
