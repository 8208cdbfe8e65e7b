import logging

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import AgentError, DecryptionError, ToolError, ValidationError
from .response import error as resp_error

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content=resp_error(code="validation_error", message=str(exc)))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=resp_error(code="validation_error", message=str(exc.errors())))

    @app.exception_handler(DecryptionError)
    async def decryption_error_handler(request: Request, exc: DecryptionError):
        return JSONResponse(status_code=400, content=resp_error(code="decryption_failed", message=str(exc)))

    @app.exception_handler(ToolError)
    async def tool_error_handler(request: Request, exc: ToolError):
        logger.warning("Tool %s failed on %s: %s", exc.tool, request.url.path, exc)
        return JSONResponse(status_code=502, content=resp_error(code="tool_error", message=str(exc)))

    @app.exception_handler(AgentError)
    async def agent_error_handler(request: Request, exc: AgentError):
        logger.error("Agent error on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content=resp_error(code="agent_error", message=str(exc)))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content=resp_error(code=str(exc.status_code), message=str(exc.detail)))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=resp_error(code="internal_error", message="Internal server error"))
