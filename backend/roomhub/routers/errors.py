from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from ..services.errors import ErrorKind
from .rooms import STATUS_BY_ERROR


def describe(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid input"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):
        kind = ErrorKind.validation_error
        return JSONResponse(
            status_code=STATUS_BY_ERROR[kind],
            content={"success": False, "error": kind.value, "message": describe(exc.errors())},
        )
