"""Step failure taxonomy for scenario runs.

Every way a step can go wrong maps to one StepFailure subclass. The runner
records these on the step result; they never stop sibling steps.
"""

import json
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

# Failure kinds (stable strings used in reports)
KIND_STATUS = "status"
KIND_SHAPE = "shape"
KIND_TRANSPORT = "transport"
KIND_EXTRACTION = "extraction"
KIND_UPSTREAM = "upstream"

# Longest body excerpt carried in a status mismatch message
BODY_EXCERPT_LIMIT = 200


@dataclass
class StepFailure(Exception):
    """Base error class for step failures."""

    message: str
    kind: str = "failure"
    data: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict for reports."""
        error: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.data:
            error["data"] = self.data
        return error


@dataclass
class StatusMismatchError(StepFailure):
    """Observed status code differs from the expected one."""

    message: str = "Unexpected status code"
    kind: str = KIND_STATUS


@dataclass
class ShapeMismatchError(StepFailure):
    """Response body does not match the expected shape."""

    message: str = "Response body does not match expected shape"
    kind: str = KIND_SHAPE


@dataclass
class TransportError(StepFailure):
    """No response: connection failure or timeout."""

    message: str = "Request failed"
    kind: str = KIND_TRANSPORT


@dataclass
class ExtractionError(StepFailure):
    """Value to capture is missing from the response body or null."""

    message: str = "Value not found in response body"
    kind: str = KIND_EXTRACTION


@dataclass
class UpstreamStateError(StepFailure):
    """A binding the step needs was never produced by an earlier step."""

    message: str = "Required binding was not produced"
    kind: str = KIND_UPSTREAM


class ScenarioDefinitionError(Exception):
    """Scenario declared or scheduled in a way that breaks step dependencies."""


def body_excerpt(body: Any, limit: int = BODY_EXCERPT_LIMIT) -> str:
    """Render a response body as a short single-line string."""
    if body is None:
        return ""
    text = body if isinstance(body, str) else json.dumps(body, ensure_ascii=False, default=str)
    text = " ".join(text.split())
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def status_mismatch(expected: int, actual: int, body: Any = None) -> StatusMismatchError:
    """Build a StatusMismatchError with a body excerpt.

    Args:
        expected: Status code the step declared
        actual: Status code the API returned
        body: Decoded response body (dict, list or text)

    Returns:
        StatusMismatchError describing both codes
    """
    excerpt = body_excerpt(body)
    message = f"Expected status {expected}, got {actual}"
    if excerpt:
        message = f"{message}: {excerpt}"
    return StatusMismatchError(
        message=message,
        data={"expected": expected, "actual": actual, "body": excerpt},
    )


def transport_failure(error_message: str, url: str, is_timeout: bool = False) -> TransportError:
    """Map a client-level failure to TransportError.

    Args:
        error_message: Error message from the client exception
        url: URL that was being accessed
        is_timeout: Whether the request timed out

    Returns:
        TransportError with host details
    """
    if is_timeout:
        return TransportError(
            message=f"Request to {url} timed out",
            data={"url": url, "timeout": True, "original_error": error_message},
        )

    parsed = urlparse(url)
    host_port = f"{parsed.hostname}:{parsed.port}" if parsed.port else parsed.hostname
    return TransportError(
        message=f"Cannot reach API at {host_port}: {error_message}",
        data={"url": url, "timeout": False, "original_error": error_message},
    )
