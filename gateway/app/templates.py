"""
HTML template loading and placeholder substitution.

Templates live in ``gateway/app/templates/`` and use ``{{NAME}}`` markers.
Values are substituted verbatim: callers escape anything user-influenced
with ``escape_html`` / ``js_value`` first.
"""

import html
import json
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional

TEMPLATE_DIR = Path(__file__).parent / "templates"


@lru_cache(maxsize=None)
def load_template(filename: str) -> str:
    return (TEMPLATE_DIR / filename).read_text(encoding="utf-8")


def render_template(filename: str, values: Mapping[str, str]) -> str:
    """
    Read an HTML template and substitute its placeholders.

    Args:
        filename: Template file name (e.g., "login.html")
        values: Placeholder name -> pre-escaped string value

    Returns:
        The rendered HTML
    """
    result = load_template(filename)
    for key, value in values.items():
        result = result.replace("{{" + key + "}}", value)
    return result


def escape_html(text: str) -> str:
    """Escape a string for inclusion in HTML text or attribute values."""
    return html.escape(text, quote=True).replace("&#x27;", "&#39;")


def js_value(value: Optional[str]) -> str:
    """
    Format a value as a JavaScript literal for use inside a <script> block.

    Returns "null" for None, otherwise a JSON string literal in which
    "<", ">" and "&" are unicode-escaped so the value cannot end the script.
    """
    if value is None:
        return "null"
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )
