"""
Centralized error handling for the laundry HTTP API
Turns domain errors into JSON error bodies with a matching status code
"""
from tracking import t

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from machines.errors import LaundryError


class ErrorHandler:
    """
    Centralized error handling for the API layer

    Every failure response has the shape
    ``{"success": false, "error": <code>, "message": <text>}``.
    """

    @staticmethod
    def error_body(code: str, message: str) -> Dict[str, Any]:
        return {"success": False, "error": code, "message": message}

    @staticmethod
    def handle_laundry_error(error: LaundryError) -> JSONResponse:
        """
        Map a domain error onto its HTTP status

        Client mistakes (4xx) are logged as warnings; persistence and other
        server-side failures as errors.
        """
        t('webapp.error_handler.ErrorHandler.handle_laundry_error')
        logger = logging.getLogger('ErrorHandler')
        if error.http_status >= 500:
            logger.error(f"Request failed: {type(error).__name__}: {error.message}")
        else:
            logger.warning(f"Request rejected ({error.code}): {error.message}")
        return JSONResponse(
            status_code=error.http_status,
            content=ErrorHandler.error_body(error.code, error.message),
        )

    @staticmethod
    def handle_unexpected_error(error: Exception) -> JSONResponse:
        """Log an unexpected failure with traceback and return a generic 500."""
        t('webapp.error_handler.ErrorHandler.handle_unexpected_error')
        logger = logging.getLogger('ErrorHandler')
        logger.error(f"Unexpected error occurred: {type(error).__name__}: {error}", exc_info=error)
        return JSONResponse(
            status_code=500,
            content=ErrorHandler.error_body("internal_error", "Internal server error"),
        )

    @staticmethod
    def install(app: FastAPI) -> None:
        """Register the domain error handler on ``app``."""
        t('webapp.error_handler.ErrorHandler.install')

        async def laundry_error_handler(request: Request, exc: LaundryError) -> JSONResponse:
            return ErrorHandler.handle_laundry_error(exc)

        app.add_exception_handler(LaundryError, laundry_error_handler)
