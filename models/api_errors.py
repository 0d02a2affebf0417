"""
API Error Taxonomy

Every failure surfaced by the throwing call primitives is an ApiError with the
normalized shape {message, status, data}.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx


class ApiError(Exception):
    """
    Normalized error raised for any failed backend call.

    Attributes:
        message: Human-readable error description
        status: HTTP status code (0 when no response was received)
        data: Parsed response body, if any
    """
    default_status = 500

    def __init__(self, message: str, status: Optional[int] = None, data: Any = None):
        self.message = message
        self.status = self.default_status if status is None else status
        self.data = data
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "status": self.status, "data": self.data}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status={self.status})"


class NetworkError(ApiError):
    """No response was received (connection failure or timeout)."""
    default_status = 0


class AuthError(ApiError):
    """401, including after the one-shot refresh-and-retry was exhausted."""
    default_status = 401


class ClientError(ApiError):
    """Any other 4xx response."""
    default_status = 400


class ServerError(ApiError):
    """5xx response."""
    default_status = 500


class DecodeError(ApiError):
    """Malformed token or a response that does not match its declared shape."""
    default_status = 0


class ContextError(ValueError):
    """A required identity field is missing from the resolved context."""


@dataclass
class AggregationPartialFailure:
    """
    Record of phase-2 facet lookups that failed and were dropped.

    Not raised; attached to a facet result that still reports success.
    """
    failures: List[Dict[str, Any]] = field(default_factory=list)

    def add(self, family: str, name: str, error: Exception) -> None:
        self.failures.append({
            "family": family,
            "name": name,
            "error": str(error),
            "status": getattr(error, "status", None),
        })

    def __bool__(self) -> bool:
        return bool(self.failures)


def _response_data(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def error_from_response(response: httpx.Response) -> ApiError:
    """
    Map a failed response to the matching ApiError subclass.

    The message comes from the JSON body's `message` field when present,
    otherwise from the HTTP reason phrase.
    """
    data = _response_data(response)
    message = None
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        message = data["message"]
    if not message:
        message = response.reason_phrase or "API request failed"

    status = response.status_code
    if status == 401:
        error_cls = AuthError
    elif 400 <= status < 500:
        error_cls = ClientError
    elif status >= 500:
        error_cls = ServerError
    else:
        error_cls = ApiError
    return error_cls(message, status, data)
