from typing import Any
from fastapi.responses import JSONResponse


def success_response(
    message: str = "Success",
    data: Any = None,
    status_code: int = 200
) -> JSONResponse:
    """
    Standard success response

    Args:
        message: Success message
        data: Response data (optional, must be JSON-serializable)
        status_code: HTTP status code (default: 200)
    """
    response = {
        "success": True,
        "message": message
    }

    if data is not None:
        response["data"] = data

    return JSONResponse(content=response, status_code=status_code)


def error_response(
    message: str = "Error",
    status_code: int = 400
) -> JSONResponse:
    """Standard error response"""
    return JSONResponse(
        content={
            "success": False,
            "message": message
        },
        status_code=status_code
    )


def unauthorized_response(
    message: str = "Authentication required"
) -> JSONResponse:
    """Standard unauthorized response (401)"""
    return error_response(message=message, status_code=401)
