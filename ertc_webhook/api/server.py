"""FastAPI application – webhook intake plus read/download endpoints.

Run with:
    python -m ertc_webhook.main
    # → POST http://localhost:8000/webhook
    # → http://localhost:8000/docs  (Swagger UI)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from ertc_webhook.api import handlers
from ertc_webhook.config import Settings, settings as default_settings
from ertc_webhook.db import Database
from ertc_webhook.middleware.security import SecurityHeadersMiddleware, parse_cors_origins
from ertc_webhook.schemas.submission import FileDownload, IncomingFile

logger = logging.getLogger("ertc.server")

STATUS_BY_ERROR_CODE: dict[str, int] = {
    "INVALID_INPUT": 400,
    "SUBMISSION_NOT_FOUND": 404,
    "FILE_NOT_FOUND": 404,
    "REPORT_NOT_FOUND": 404,
    "PAYLOAD_TOO_LARGE": 413,
    "PERSISTENCE_ERROR": 500,
}


def _respond(result: dict) -> JSONResponse:
    status = 200
    if not result["ok"]:
        status = STATUS_BY_ERROR_CODE.get(result["error"]["error_code"], 500)
    return JSONResponse(content=result, status_code=status)


def _download(result: FileDownload | dict) -> Response:
    if isinstance(result, dict):
        return _respond(result)
    quoted = quote(result.filename)
    if quoted != result.filename:
        disposition = f"attachment; filename*=utf-8''{quoted}"
    else:
        disposition = f'attachment; filename="{result.filename}"'
    return Response(
        content=result.content,
        media_type=result.content_type,
        headers={"Content-Disposition": disposition},
    )


async def _read_webhook_body(
    request: Request, max_upload_bytes: int
) -> tuple[dict[str, Any] | None, list[IncomingFile]]:
    """Split the request into plain fields and file attachments.

    At most ``max_upload_bytes + 1`` bytes of each file are read, enough for
    the intake handler to reject anything over the limit.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            return None, []
        return (body if isinstance(body, dict) else None), []

    fields: dict[str, Any] = {}
    files: list[IncomingFile] = []
    form = await request.form()
    try:
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                files.append(
                    IncomingFile(
                        field_name=key,
                        filename=value.filename or key,
                        content_type=value.content_type or "application/octet-stream",
                        content=await value.read(max_upload_bytes + 1),
                    )
                )
            else:
                fields[key] = value
    finally:
        await form.close()
    return fields, files


def create_app(
    app_settings: Settings | None = None,
    database: Database | None = None,
) -> FastAPI:
    """Build the application; the database manager is created here unless supplied."""
    cfg = app_settings or default_settings
    db = database or Database.from_settings(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Webhook receiver starting (env=%s)", cfg.app_env)
        if not db.connected:
            await db.connect()
        logger.info("Forwarding webhook configured: %s", bool(cfg.forward_webhook_url))
        yield
        logger.info("Webhook receiver shutting down")
        await db.dispose()

    app = FastAPI(
        title="ERTC Webhook Receiver",
        description="Receives form-submission webhooks, qualifies revenue and stores reports.",
        version=cfg.service_version,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.database = db
    app.state.forward_client = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_cors_origins(cfg.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware, enabled=cfg.enable_security_headers)

    # ── Health ────────────────────────────────────────────────────────────────

    @app.get("/")
    async def root():
        return {
            "status": "ERTC Form Webhook Receiver is running",
            "message": "Ready to receive webhook notifications",
            "forwardingConfigured": bool(cfg.forward_webhook_url),
        }

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": cfg.service_version,
            "database": "connected" if db.connected else "disconnected",
        }

    # ── Intake ────────────────────────────────────────────────────────────────

    @app.post("/webhook")
    async def receive_webhook(request: Request):
        fields, files = await _read_webhook_body(request, cfg.max_upload_bytes)
        if fields is None:
            return _respond(
                handlers._error_response(
                    "receive_submission",
                    "INVALID_INPUT",
                    "Request body must be a JSON object or a form",
                    0.0,
                )
            )
        result = await handlers.handle_receive_submission(
            db,
            cfg,
            fields,
            files,
            http_client=request.app.state.forward_client,
        )
        return _respond(result)

    # ── Read / download ───────────────────────────────────────────────────────

    @app.get("/submissions")
    async def list_submissions(
        limit: int = Query(20),
        offset: int = Query(0),
    ):
        return _respond(await handlers.handle_list_submissions(db, {"limit": limit, "offset": offset}))

    @app.get("/submissions/{submission_id}")
    async def get_submission(submission_id: str):
        return _respond(await handlers.handle_get_submission(db, submission_id))

    @app.get("/submissions/{submission_id}/report")
    async def download_report(submission_id: str):
        return _download(await handlers.handle_download_report(db, submission_id))

    @app.get("/submissions/{submission_id}/files/{file_id}")
    async def download_file(submission_id: str, file_id: str):
        return _download(await handlers.handle_download_file(db, submission_id, file_id))

    return app


app = create_app()
