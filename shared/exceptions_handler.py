import logging

from shared.exceptions import NotFound, TeamError, TeamErrorKind

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def status_code_for(kind: TeamErrorKind) -> int:
    match kind:
        case TeamErrorKind.TEAM_NOT_FOUND | TeamErrorKind.MEMBER_NOT_FOUND:
            return 404
        case TeamErrorKind.ALREADY_MEMBER | TeamErrorKind.TEAM_NAME_TAKEN:
            return 409
        case TeamErrorKind.LAST_ADMIN_PROTECTED:
            return 400
        case _:
            return 500


async def not_found_exception_handler(request: Request, exc: NotFound):
    return JSONResponse(
        status_code=404,
        content={
            "message": f"{exc.name} not found."
        },
    )


async def team_error_handler(request: Request, exc: TeamError):
    status_code = status_code_for(exc.kind)
    if status_code == 500:
        logger.error("Unmapped team error kind %s: %s", exc.kind, exc.message)
        return JSONResponse(status_code=500, content={"message": "Internal server error"})

    return JSONResponse(
        status_code=status_code,
        content={
            "message": exc.message,
            "kind": exc.kind.value
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "message": "Internal server error"
        },
    )
