from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..exceptions import (
    BotglueError,
    EnvironmentConflict,
    EnvironmentNotFound,
    InvalidRequest,
    PortConflict,
    PortRangeExhausted,
    ProjectNotFound,
)

# Most specific first, the first isinstance match wins
_STATUS_CODES = [
    (EnvironmentNotFound, status.HTTP_404_NOT_FOUND),
    (ProjectNotFound, status.HTTP_404_NOT_FOUND),
    (EnvironmentConflict, status.HTTP_409_CONFLICT),
    (PortConflict, status.HTTP_409_CONFLICT),
    (PortRangeExhausted, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (InvalidRequest, status.HTTP_400_BAD_REQUEST),
]


def status_code_for(exc: BotglueError) -> int:
    for exc_type, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def botglue_error_handler(request: Request, exc: BotglueError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"detail": str(exc)}
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(BotglueError, botglue_error_handler)
