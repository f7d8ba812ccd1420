from __future__ import annotations

import hmac
import logging
import threading
from typing import Any, Dict, Mapping, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .notifier import DiscordNotifier
from .pipeline import BatchOrchestrator, apply_field_aliases

LOGGER = logging.getLogger(__name__)


class _ApiError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _extract_token(request: Request) -> Optional[str]:
    """Accept ``Bearer <token>``, a bare Authorization value or ``?api_token=``."""

    header = (request.headers.get("authorization") or "").strip()
    if header.lower().startswith("bearer "):
        header = header[7:].strip()
    return header or request.query_params.get("api_token") or None


def create_app(
    orchestrator: BatchOrchestrator,
    *,
    api_token: str,
    notifier: Optional[DiscordNotifier] = None,
    field_aliases: Optional[Mapping[str, str]] = None,
) -> FastAPI:
    """Build the HTTP service the game server posts activity batches to."""

    if not api_token:
        raise ValueError("An API token is required to start the service")

    app = FastAPI(title="SpreadsheetRanker API")
    notifier = notifier or DiscordNotifier(None)
    aliases = dict(field_aliases or {})
    # one batch at a time: batches read then write the same cells
    batch_lock = threading.Lock()

    @app.exception_handler(_ApiError)
    async def _api_error_handler(_: Request, exc: _ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.message},
        )

    def verify_api_token(request: Request) -> None:
        token = _extract_token(request)
        if not token:
            raise _ApiError(
                401,
                "API token is required. Provide it as a Bearer token in Authorization "
                "header or as api_token query parameter.",
            )
        if not hmac.compare_digest(token.encode("utf-8"), api_token.encode("utf-8")):
            raise _ApiError(403, "Invalid API token")

    @app.get("/")
    def health() -> Dict[str, str]:
        return {"message": "SpreadsheetRanker API is running"}

    @app.post("/update-fields", dependencies=[Depends(verify_api_token)])
    def update_fields(body: Any = Body(None)) -> Any:
        if not isinstance(body, Mapping):
            raise _ApiError(400, "Request body must be an object with a 'payloads' array")
        payloads = body.get("payloads")
        if not isinstance(payloads, list) or not payloads:
            raise _ApiError(400, "Request body must be a non-empty array of update objects")

        invoker = str(body.get("invoker") or "Unknown")
        first = payloads[0] if isinstance(payloads[0], Mapping) else {}
        department = first.get("department") or "Unknown"

        try:
            notifier.command_used(invoker, payloads)
            with batch_lock:
                report = orchestrator.apply_batch(apply_field_aliases(payloads, aliases))
            notifier.batch_results(invoker, department, report.results)
        except Exception as exc:
            LOGGER.exception("Error in update-fields endpoint")
            notifier.command_error(exc)
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "message": "Internal server error",
                    "error": str(exc),
                },
            )

        return {
            "success": True,
            "results": [result.to_dict() for result in report.results],
            "successCount": report.success_count,
            "failureCount": report.failure_count,
        }

    return app
