"""Mapping of service exceptions to HTTP error responses."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from catalog_search.api.schemas import ErrorDetail, ErrorParameter, ErrorResponse
from catalog_search.exceptions import (
    IndexRecreationInProgressError,
    JobNotFoundError,
    RequestValidationError,
)


def _error_response(status_code: int, detail: ErrorDetail) -> JSONResponse:
    body = ErrorResponse(errors=[detail], total_records=1)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def handle_validation_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        ErrorDetail(
            message=exc.message,
            type=type(exc).__name__,
            code="validation_error",
            parameters=[ErrorParameter(key=exc.key, value=exc.value)],
        ),
    )


async def handle_job_not_found(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(
        status.HTTP_404_NOT_FOUND,
        ErrorDetail(message=str(exc), type=type(exc).__name__, code="not_found_error"),
    )


async def handle_recreation_in_progress(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(
        status.HTTP_409_CONFLICT,
        ErrorDetail(message=str(exc), type=type(exc).__name__, code="conflict_error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(JobNotFoundError, handle_job_not_found)
    app.add_exception_handler(IndexRecreationInProgressError, handle_recreation_in_progress)
