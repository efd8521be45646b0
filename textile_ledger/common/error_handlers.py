from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from textile_ledger.core.exceptions import LedgerValidationError, NotFoundError, PersistenceError
from textile_ledger.logger_config import logger
from textile_ledger.schemas.common import ErrorResponse


def _error(message: str, status_code: int) -> JSONResponse:
    body = ErrorResponse(message=message, status_code=status_code)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def register_error_handlers(app: FastAPI):
    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, e: HTTPException):
        return _error(str(e.detail), e.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, e: RequestValidationError):
        errors = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return _error(errors or "Invalid request", status.HTTP_422_UNPROCESSABLE_ENTITY)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, e: NotFoundError):
        return _error(str(e), status.HTTP_404_NOT_FOUND)

    @app.exception_handler(LedgerValidationError)
    async def handle_validation(request: Request, e: LedgerValidationError):
        return _error(str(e), status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(PersistenceError)
    async def handle_persistence(request: Request, e: PersistenceError):
        logger.error(f"Persistence failure on {request.url.path}: {e}")
        return _error(str(e), status.HTTP_503_SERVICE_UNAVAILABLE)

    @app.exception_handler(Exception)
    async def handle_exception(request: Request, e: Exception):
        logger.exception("Unhandled exception occurred")
        return _error("Internal Server Error", status.HTTP_500_INTERNAL_SERVER_ERROR)
