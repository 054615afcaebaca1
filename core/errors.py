"""Error kinds raised by the Foresight core."""

from __future__ import annotations

from typing import Any


class ForesightError(Exception):
    """Base class for all Foresight failures."""

    error_code = "FORESIGHT_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class EmptySeriesError(ForesightError):
    """A series with no records was supplied or operated on."""

    error_code = "EMPTY_SERIES"


class NoLiveDataError(ForesightError):
    """The live series has not been loaded yet."""

    error_code = "NO_LIVE_DATA"


class InvalidInputError(ForesightError, ValueError):
    """Caller supplied an argument outside the accepted domain."""

    error_code = "INVALID_INPUT"


class BackendUnavailableError(ForesightError):
    """Network failure or timeout talking to a remote collaborator."""

    error_code = "BACKEND_UNAVAILABLE"


class MalformedResponseError(ForesightError):
    """A remote response did not have the expected JSON shape."""

    error_code = "MALFORMED_RESPONSE"


class PredictionRejectedError(ForesightError):
    """The prediction backend answered with an explicit error status."""

    error_code = "PREDICTION_REJECTED"


class PredictionBusyError(ForesightError):
    """A prediction request is already outstanding."""

    error_code = "PREDICTION_BUSY"
