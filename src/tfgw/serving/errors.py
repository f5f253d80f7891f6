"""Normalized gateway errors.

Every failure on the relay path is reported as a :class:`GatewayError`
tagged with one of four :class:`ErrorKind` values:

``UnsupportedModel``
    The identifier has no registry entry. Raised before any network call.
``DownstreamRejected``
    The service answered with a non-2xx status; the status is mirrored.
``DownstreamUnreachable``
    The request went out but no response came back (timeout, refused
    connection, DNS failure, reset).
``RequestSetupFailure``
    The request could not be built or sent at all (bad target address,
    payload that is not JSON serializable).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

import requests

UNKNOWN_DOWNSTREAM_ERROR = "Unknown error from prediction service"

# Raised by requests while preparing the request, before anything is sent.
_SETUP_ERRORS = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
    requests.exceptions.URLRequired,
    requests.exceptions.InvalidHeader,
    requests.exceptions.InvalidJSONError,
)


class ErrorKind(str, Enum):
    UNSUPPORTED_MODEL = "UnsupportedModel"
    DOWNSTREAM_REJECTED = "DownstreamRejected"
    DOWNSTREAM_UNREACHABLE = "DownstreamUnreachable"
    REQUEST_SETUP_FAILURE = "RequestSetupFailure"


class GatewayError(Exception):
    def __init__(self, kind: ErrorKind, status_code: int, message: str, detail: Any = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.message = message
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "detail": self.detail}

    def __repr__(self) -> str:
        return f"GatewayError(kind={self.kind.value}, status_code={self.status_code}, message={self.message!r})"


def unsupported_model(name: Optional[object]) -> GatewayError:
    return GatewayError(ErrorKind.UNSUPPORTED_MODEL, 400, f"Model '{name}' is not supported.")


def missing_model_field() -> GatewayError:
    return GatewayError(
        ErrorKind.UNSUPPORTED_MODEL,
        400,
        "Request body must include a 'model' field.",
    )


def downstream_detail(response: requests.Response) -> Any:
    """Best available diagnostic from a failed downstream response."""
    if not response.content:
        return UNKNOWN_DOWNSTREAM_ERROR
    try:
        body = response.json()
    except ValueError:
        body = None
    # Empty objects and arrays are still the service's answer.
    if body is not None:
        return body
    return response.text.strip() or UNKNOWN_DOWNSTREAM_ERROR


def rejected_error(model: str, response: requests.Response) -> GatewayError:
    return GatewayError(
        ErrorKind.DOWNSTREAM_REJECTED,
        response.status_code,
        f"Prediction service for model {model} failed",
        downstream_detail(response),
    )


def classify_exception(model: str, exc: BaseException) -> GatewayError:
    """Map an exception raised while calling a downstream service.

    Only exceptions raised by the HTTP client or by payload serialization are
    expected here; anything else is a programming error and is re-raised.
    """
    if isinstance(exc, _SETUP_ERRORS):
        return GatewayError(ErrorKind.REQUEST_SETUP_FAILURE, 500, "Internal Server Error", str(exc))
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return rejected_error(model, exc.response)
    if isinstance(exc, requests.RequestException):
        return GatewayError(
            ErrorKind.DOWNSTREAM_UNREACHABLE,
            503,
            f"Prediction service for model {model} unavailable",
            str(exc) or "No response from prediction service",
        )
    if isinstance(exc, (TypeError, ValueError)):
        return GatewayError(ErrorKind.REQUEST_SETUP_FAILURE, 500, "Internal Server Error", str(exc))
    raise exc
