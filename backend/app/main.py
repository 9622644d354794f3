from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.transactions import router as transactions_router
from app.config import get_settings
from app.db.session import Database
from app.errors import ExportSweepError
from app.logging_setup import configure_logging, get_logger
from app.schemas.transactions import ErrorResponse

logger = get_logger(__name__)

_ERROR_CODES = {
    400: "invalid_request",
    404: "not_found",
    405: "method_not_allowed",
}


def _error(status_code: int, error: str, detail=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


def create_app(database: Optional[Database] = None) -> FastAPI:
    settings = get_settings()
    if database is None:
        database = Database(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        database.open()
        try:
            yield
        finally:
            database.close()

    app = FastAPI(title="Ledger", lifespan=lifespan)
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _ERROR_CODES.get(exc.status_code, "request_failed")
        if exc.status_code >= 500:
            code = "internal_error"
        return _error(exc.status_code, code, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        detail = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg")} for err in exc.errors()
        ]
        return _error(400, "invalid_request", detail)

    @app.exception_handler(SQLAlchemyError)
    async def store_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception("Store query failed for %s %s", request.method, request.url.path)
        return _error(500, "store_error", "Internal Server Error")

    @app.exception_handler(ExportSweepError)
    async def export_error(request: Request, exc: ExportSweepError) -> JSONResponse:
        logger.error("Export failed on page %d", exc.page, exc_info=exc.__cause__)
        return _error(500, "export_failed", str(exc))

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error for %s %s", request.method, request.url.path)
        return _error(500, "internal_error", "Internal Server Error")

    @app.get("/health", tags=["health"])
    def health() -> dict:
        return {"status": "ok"}

    app.include_router(transactions_router, prefix="/transaction", tags=["transactions"])
    return app


app = create_app()
