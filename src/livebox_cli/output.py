"""Output rendering with optional JSONPath filtering."""

import json
from typing import Any

from jsonpath_ng.ext import parse as parse_jsonpath
from jsonpath_ng.exceptions import JSONPathError

from livebox_cli.errors import QueryError, QueryNoMatchError


def select(value: Any, query: str) -> Any:
    """Select exactly one node of a JSON value.

    Args:
        value: Decoded JSON value
        query: JSONPath expression (e.g. ``$.data.IPAddress``)

    Returns:
        The single matching node

    Raises:
        QueryError: If the expression cannot be parsed
        QueryNoMatchError: If the expression matches zero or several nodes
    """
    try:
        expression = parse_jsonpath(query)
    except (JSONPathError, ValueError) as e:
        raise QueryError(f"Invalid query {query!r}: {e}") from e

    matches = expression.find(value)
    if len(matches) != 1:
        raise QueryNoMatchError(query, len(matches))
    return matches[0].value


def render_output(value: Any, query: str | None = None, raw: bool = False) -> str:
    """Render a result for standard output.

    Args:
        value: Decoded JSON value
        query: Optional JSONPath expression selecting one node
        raw: If True and the selected node is a string, print it unquoted

    Returns:
        Pretty-printed JSON, or the bare string in raw mode
    """
    if query is not None:
        value = select(value, query)

    if raw and isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False)
