"""Value extraction from decoded response bodies.

Paths use dotted keys and bracketed indices: ``novoMercado.id``,
``[0].id``, ``items[2].nome``. The empty path selects the whole body.
"""

import re
from typing import Any

from .errors import ExtractionError

_TOKEN = re.compile(r"([^.\[\]]+)|\[(-?\d+)\]")


def parse_path(path: str) -> list[str | int]:
    """Split an extraction path into keys and indices.

    Raises:
        ExtractionError: If the path is malformed
    """
    if not path:
        return []

    tokens: list[str | int] = []
    position = 0
    while position < len(path):
        if path[position] == "." and position > 0:
            position += 1
        match = _TOKEN.match(path, position)
        if not match:
            raise ExtractionError(
                message=f"Malformed extraction path '{path}' at position {position}",
                data={"path": path},
            )
        key, index = match.groups()
        tokens.append(int(index) if index is not None else key)
        position = match.end()
    return tokens


def extract_path(body: Any, path: str) -> Any:
    """Return the value at ``path`` inside ``body``.

    Args:
        body: Decoded JSON body
        path: Extraction path ("" for the whole body)

    Returns:
        The selected value (may be None if the API returned null)

    Raises:
        ExtractionError: If a key or index along the path is absent
    """
    current = body
    walked = ""
    for token in parse_path(path):
        if isinstance(token, int):
            step = f"{walked}[{token}]"
            if not isinstance(current, list) or not -len(current) <= token < len(current):
                raise ExtractionError(
                    message=f"Index {step} not found in response body",
                    data={"path": path, "missing": step},
                )
        else:
            step = f"{walked}.{token}" if walked else token
            if not isinstance(current, dict) or token not in current:
                raise ExtractionError(
                    message=f"Key '{step}' not found in response body",
                    data={"path": path, "missing": step},
                )
        current = current[token]
        walked = step
    return current
