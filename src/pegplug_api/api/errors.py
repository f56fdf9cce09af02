"""Translation of reward-domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from pegplug_api.domain.errors import (
    AlreadyRedeemedError,
    InsufficientSpinsError,
    InvalidTransitionError,
    NoDealsAvailableError,
    NotFoundError,
    OutOfRangeError,
    RewardError,
    StoreUnavailableError,
)


_STATUS_BY_ERROR: tuple[tuple[type[RewardError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InsufficientSpinsError, status.HTTP_409_CONFLICT),
    (NoDealsAvailableError, status.HTTP_409_CONFLICT),
    (AlreadyRedeemedError, status.HTTP_409_CONFLICT),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (OutOfRangeError, status.HTTP_403_FORBIDDEN),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def status_for(error: RewardError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def http_error(error: RewardError) -> HTTPException:
    """Short user-facing message plus the stable error code."""

    message = error.message if isinstance(error, StoreUnavailableError) else str(error)
    return HTTPException(
        status_code=status_for(error),
        detail={"code": error.code, "message": message},
    )


__all__ = ["http_error", "status_for"]
