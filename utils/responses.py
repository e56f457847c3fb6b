from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Raised from routes and dependencies to answer with an {"error": ...} body."""

    def __init__(self, error: str, status: int = 400):
        super().__init__(error)
        self.error = error
        self.status = status


def error_response(error, status=400):
    return JSONResponse(
        status_code=status,
        content={"error": error},
    )


async def api_error_handler(request: Request, exc: ApiError):
    return error_response(exc.error, exc.status)
