from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class AppError(Exception):
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(AppError):
    status_code = 400
    message = "Invalid request"


class InvalidUrl(ValidationError):
    message = "Invalid URL provided"


class InvalidShortcodeFormat(ValidationError):
    message = "Invalid shortcode format"


class ShortcodeTaken(AppError):
    status_code = 400
    message = "Shortcode already exists"


class NotFound(AppError):
    status_code = 404
    message = "Short URL not found"


class Expired(NotFound):
    pass


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        if errors:
            loc = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
            message = f"{loc}: {errors[0].get('msg')}" if loc else str(errors[0].get("msg"))
        else:
            message = "Invalid request body"
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        audit = getattr(request.app.state, "audit", None)
        if audit is not None:
            audit.log("fatal", "handler", f"unhandled error: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
