from fastapi import HTTPException, status

from ..exceptions import (
    NotFoundError,
    OverlapError,
    SchedulingError,
    TransientIOError,
    ValidationError,
)


def to_http_exception(error: SchedulingError) -> HTTPException:
    """Map engine errors onto HTTP status codes."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, OverlapError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, TransientIOError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
