"""
EggTrack Backend — HTML Templates
==================================

What:  Jinja2 environment for the entries page and the printable label
       fallback. Templates live in eggtrack/templates/.
"""

from datetime import datetime
from typing import Any

from jinja2 import Environment, PackageLoader, select_autoescape

from eggtrack import __version__
from eggtrack.schemas.entry import is_web_link

APP_TITLE = "Egg Label Tracker"
LINK_DISPLAY_LENGTH = 50


def truncate_link(link: str, length: int = LINK_DISPLAY_LENGTH) -> str:
    if len(link) > length:
        return f"{link[:length]}..."
    return link


def format_timestamp(value: str) -> str:
    """'2025-01-15T12:30:00.000Z' → 'Jan 15, 2025, 12:30 PM'; unparseable values pass through."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return value or ""
    return parsed.strftime("%b %d, %Y, %I:%M %p")


templates = Environment(
    loader=PackageLoader("eggtrack", "templates"),
    autoescape=select_autoescape(["html", "xml"]),
)

templates.globals["app_title"] = APP_TITLE
templates.globals["app_version"] = __version__
templates.filters["truncate_link"] = truncate_link
templates.filters["format_timestamp"] = format_timestamp
templates.tests["web_link"] = is_web_link


def render_template(template_name: str, **context: Any) -> str:
    return templates.get_template(template_name).render(**context)
