"""Template rendering utilities."""

import logging
import shlex
from typing import Any
from jinja2 import Environment, StrictUndefined, TemplateError


logger = logging.getLogger(__name__)

# Recipes are shell text; autoescaping would corrupt quotes and ampersands
_environment = Environment(
    autoescape=False,
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)
_environment.filters["quote"] = lambda value: shlex.quote(str(value))


def render_template(template_str: str, **context: Any) -> str:
    """Render a Jinja2 template string with given context."""
    try:
        template = _environment.from_string(template_str)
        return template.render(**context)

    except TemplateError as e:
        logger.error(f"Template rendering error: {e}")
        raise


def truncate_text(text: str, limit: int, marker: str = "\n[truncated]") -> str:
    """Cut text to at most ``limit`` characters, ending with ``marker``."""
    if len(text) <= limit:
        return text
    return text[: max(limit - len(marker), 0)] + marker
