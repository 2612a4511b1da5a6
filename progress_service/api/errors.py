"""Translate progress-core errors into HTTP responses."""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException, status

from progress_service.core.errors import (
    AttemptsExceededError,
    InvalidTransitionError,
    NotFoundError,
    ProgressError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[ProgressError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    AttemptsExceededError: status.HTTP_409_CONFLICT,
}


def status_for(error: ProgressError) -> int:
    return _STATUS_BY_ERROR.get(type(error), status.HTTP_400_BAD_REQUEST)


def raise_http(error: ProgressError) -> NoReturn:
    """Re-raise a domain error as an HTTPException carrying its kind."""
    code = status_for(error)
    if code == status.HTTP_404_NOT_FOUND:
        logger.info("Not found: %s", error)
    raise HTTPException(
        status_code=code,
        detail={"error": error.kind, "message": str(error)},
    ) from None
