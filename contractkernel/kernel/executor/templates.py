"""Placeholder rendering for success output and setState templates.

Placeholders are ``{{name}}`` or ``{{name|filter}}``. Unresolved names render
as an empty string; rendering never raises.
"""

import json
import logging
import re
from collections.abc import Callable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*(?:\|\s*(\w+)\s*)?\}\}")
_EXTENSION = re.compile(r"\.[^/.]+$")


def _basename(value: str) -> str:
    return _EXTENSION.sub("", value)


def _dirname(value: str) -> str:
    if "/" not in value:
        return ""
    return value.rsplit("/", 1)[0]


FILTERS: dict[str, Callable[[str], str]] = {
    "basename": _basename,
    "dirname": _dirname,
}


def render_value(value: Any) -> str:
    """Render a bag value the way manifests expect to see it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    return str(value)


def evaluate(template: str, bag: Mapping[str, Any]) -> str:
    """Substitute every placeholder in ``template`` from ``bag``.

    Args:
        template: Text containing ``{{name}}`` / ``{{name|filter}}`` placeholders
        bag: Values available to the template

    Returns:
        Rendered text
    """
    if not template:
        return ""

    def substitute(match: re.Match[str]) -> str:
        key, filter_name = match.group(1), match.group(2)
        if key not in bag:
            return ""
        text = render_value(bag[key])
        if filter_name:
            apply = FILTERS.get(filter_name)
            if apply is None:
                logger.debug("Unknown template filter '%s' ignored", filter_name)
            else:
                text = apply(text)
        return text

    return PLACEHOLDER.sub(substitute, template)
