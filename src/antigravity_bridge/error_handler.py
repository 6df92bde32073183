# src/antigravity_bridge/error_handler.py
import re
import logging
from typing import Optional

lib_logger = logging.getLogger("antigravity_bridge")


def _parse_duration_string(duration_str: str) -> Optional[int]:
    """
    Parse backend duration strings to total seconds.

    Handles compound durations ('156h14m36.75s', '2h30m'), simple ones
    ('3600s', '60m') and plain numbers of seconds.
    """
    if not duration_str:
        return None

    remaining = duration_str.strip().lower()
    try:
        return int(float(remaining))
    except ValueError:
        pass

    total_seconds = 0
    for pattern, factor in ((r"(\d+)h", 3600), (r"(\d+)m(?!s)", 60), (r"([\d.]+)s", 1)):
        match = re.match(pattern, remaining)
        if match:
            total_seconds += int(float(match.group(1)) * factor)
            remaining = remaining[match.end() :]

    return total_seconds if total_seconds > 0 else None


def extract_retry_after_from_body(error_body: Optional[str]) -> Optional[int]:
    """
    Extract the suggested wait from an error body, e.g.
    "Your quota will reset after 39s." or "retry after 2h30m".
    """
    if not error_body:
        return None

    patterns = [
        r"quota will reset after\s*([\dhms.]+)",
        r"reset after\s*([\dhms.]+)",
        r"retry after\s*([\dhms.]+)",
        r"try again in\s*(\d+)\s*seconds?",
    ]
    for pattern in patterns:
        match = re.search(pattern, error_body, re.IGNORECASE)
        if match:
            result = _parse_duration_string(match.group(1).rstrip("."))
            if result is not None:
                return result
    return None


def classify_status(status_code: Optional[int]) -> str:
    """Coarse error category for a transport failure."""
    if status_code is None:
        return "api_connection"
    if status_code in (401, 403):
        return "authentication"
    if status_code == 429:
        return "rate_limit"
    if status_code in (400, 404, 413, 422):
        return "invalid_request"
    if status_code >= 500:
        return "server_error"
    return "unknown"


class BridgeError(Exception):
    """Base class for errors surfaced to callers of the bridge."""

    pass


class TransportError(BridgeError):
    """
    Raised when the backend cannot be reached or answers with a non-2xx status.

    Transport failures are never retried by the bridge; callers decide.

    Attributes:
        status_code: HTTP status, or None for network-level failures
        body: Response body text when one was received
        url: Endpoint the request was sent to
        error_type: Coarse category (see classify_status)
        retry_after: Seconds the backend asked us to wait, if stated
    """

    def __init__(
        self,
        status_code: Optional[int],
        body: str = "",
        url: str = "",
        message: str = "",
    ):
        self.status_code = status_code
        self.body = body or ""
        self.url = url
        self.error_type = classify_status(status_code)
        self.retry_after = extract_retry_after_from_body(self.body)
        if message:
            self.message = message
        elif self.body:
            self.message = self.body
        else:
            self.message = f"Antigravity request failed ({status_code})"
        super().__init__(self.message)


class MissingCredentialError(BridgeError):
    """Raised when the credential source cannot provide a bearer token."""

    def __init__(self, message: str = ""):
        self.message = message or "Antigravity access token missing"
        super().__init__(self.message)
