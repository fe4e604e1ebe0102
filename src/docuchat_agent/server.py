from __future__ import annotations

import asyncio
import json
import secrets
from datetime import UTC, datetime

from fastapi import FastAPI, File, Form, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger

from docuchat_agent.bootstrap import AppRuntime
from docuchat_agent.errors import (
    DocuChatError,
    OrchestrationLimitError,
    ValidationError,
)
from docuchat_agent.tools.calendar.calendar_auth import authorization_url, exchange_code
from docuchat_agent.validators import require_session_id, validate_chat_request

SESSION_COOKIE = "sessionId"
SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 30

INPUT_TOKENS_HEADER = "X-Usage-Input-Tokens"
OUTPUT_TOKENS_HEADER = "X-Usage-Output-Tokens"
CYCLES_HEADER = "X-Orchestration-Cycles"

LIMIT_FALLBACK_MESSAGE = (
    "I wasn't able to finish this request. Please try rephrasing it or breaking it into smaller steps."
)
INTERNAL_ERROR_MESSAGE = "Something went wrong while processing your request. Please try again."

_ERROR_TITLES = {
    400: "Invalid request",
    429: "Rate limit exceeded",
    504: "Request timed out",
}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": _ERROR_TITLES.get(status_code, "Internal server error"),
            "message": message,
        },
    )


def create_app(runtime: AppRuntime) -> FastAPI:
    app = FastAPI(title="DocuChat AI")
    app.state.runtime = runtime

    if runtime.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=runtime.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=[INPUT_TOKENS_HEADER, OUTPUT_TOKENS_HEADER, CYCLES_HEADER],
        )

    @app.exception_handler(OrchestrationLimitError)
    async def _limit_handler(_request: Request, ex: OrchestrationLimitError) -> JSONResponse:
        logger.error(f"Chat failed: {ex.message}")
        return error_response(500, ex.partial_answer or LIMIT_FALLBACK_MESSAGE)

    @app.exception_handler(DocuChatError)
    async def _docuchat_handler(_request: Request, ex: DocuChatError) -> JSONResponse:
        if ex.status_code >= 500:
            logger.error(f"Request failed ({ex.error_type}): {ex.message}")
        else:
            logger.warning(f"Request rejected ({ex.error_type}): {ex.message}")
        return error_response(ex.status_code, ex.message)

    @app.exception_handler(Exception)
    async def _unexpected_handler(_request: Request, ex: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error: {ex}")
        return error_response(500, INTERNAL_ERROR_MESSAGE)

    @app.post("/api/chat")
    async def chat(request: Request, response: Response) -> dict:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as ex:
            raise ValidationError("Request body must be valid JSON") from ex

        message, session_id = validate_chat_request(body)
        result = await runtime.agent.chat(session_id, message)
        logger.info(
            f"Session {session_id}: answered in {result.cycles} cycle(s), "
            f"{result.usage.input_tokens} in / {result.usage.output_tokens} out tokens"
        )
        response.headers[INPUT_TOKENS_HEADER] = str(result.usage.input_tokens)
        response.headers[OUTPUT_TOKENS_HEADER] = str(result.usage.output_tokens)
        response.headers[CYCLES_HEADER] = str(result.cycles)
        return {"success": True, "message": result.answer}

    @app.post("/api/upload-pdf")
    async def upload_pdf(
        file: UploadFile | None = File(None),
        sessionId: str | None = Form(None),
    ) -> dict:
        session_id = require_session_id(sessionId)
        if file is None:
            raise ValidationError("No file provided")
        data = await file.read()
        result = await runtime.ingestor.ingest(session_id, file.filename or "", data)
        return result.to_response()

    @app.get("/api/auth/google")
    async def google_auth(request: Request, sessionId: str | None = None) -> RedirectResponse:
        session_id = require_session_id(sessionId)
        if not runtime.calendar_configured:
            raise DocuChatError("Google Calendar integration is not configured")
        url = authorization_url(
            runtime.google_client_id,
            runtime.google_client_secret,
            _redirect_url(request, runtime),
            session_id,
        )
        return RedirectResponse(url)

    @app.get("/api/auth/google/callback", name="google_auth_callback")
    async def google_auth_callback(
        request: Request,
        code: str | None = None,
        state: str | None = None,
    ) -> RedirectResponse:
        if not code:
            raise ValidationError("No code provided")
        if not runtime.calendar_configured:
            raise DocuChatError("Google Calendar integration is not configured")

        session_id = state or request.cookies.get(SESSION_COOKIE) or secrets.token_urlsafe(12)
        try:
            await asyncio.to_thread(
                exchange_code,
                runtime.google_client_id,
                runtime.google_client_secret,
                _redirect_url(request, runtime),
                code,
                session_id,
                runtime.token_store,
            )
        except Exception as ex:
            logger.error(f"Error exchanging code for tokens: {ex}")
            raise DocuChatError("Failed to exchange code") from ex

        response = RedirectResponse("/?connected=true")
        response.set_cookie(
            SESSION_COOKIE,
            session_id,
            max_age=SESSION_COOKIE_MAX_AGE,
            httponly=True,
            secure=request.url.scheme == "https",
        )
        return response

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "healthy",
            "tools": runtime.agent.tool_names,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    return app


def _redirect_url(request: Request, runtime: AppRuntime) -> str:
    return runtime.google_redirect_url or str(request.url_for("google_auth_callback"))
