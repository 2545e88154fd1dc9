import re
from typing import Any

# ":name" placeholders; "::type" casts are left alone
_PARAM_PATTERN = re.compile(r"(?<!:):(\w+)")


def bind_named(query: str, params: dict[str, Any]) -> tuple[str, list[Any]]:
    """
    Convert named parameters (:param_name) to asyncpg positional parameters
    ($1, $2, ...). A name used several times binds to a single position.
    PostgreSQL casts such as ``:scopes::text[]`` are supported.
    """
    positions: dict[str, int] = {}
    values: list[Any] = []

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in positions:
            if name not in params:
                raise ValueError(f"Missing parameter: {name}")
            values.append(params[name])
            positions[name] = len(values)
        return f"${positions[name]}"

    return _PARAM_PATTERN.sub(_replace, query), values
