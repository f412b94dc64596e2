from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from flatchat import __version__
from flatchat.core import config
from flatchat.core.errors import ChatError
from flatchat.core.observability import (
    get_logger,
    reset_request_context,
    set_request_context,
    setup_logging,
)
from flatchat.modules.chat.chat_router import router as chat_router
from flatchat.modules.chat.chat_service import ChatService

log = get_logger("api")


# =========================
# FastAPI app
# =========================

def create_app(service: Optional[ChatService] = None) -> FastAPI:
    """
    Build the HTTP app around a ChatService.

    Without an explicit service one is built over config.DATA_DIR. Storage
    files are created (with the configured permission mode) at construction.
    """
    service = service or ChatService.from_data_dir()
    service.ensure_storage()

    app = FastAPI(title="flatchat", version=__version__)
    app.state.chat_service = service
    app.include_router(chat_router)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        token = set_request_context()
        try:
            return await call_next(request)
        finally:
            reset_request_context(token)

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        refusal = exc.refusal
        if refusal.http_status >= 500:
            log.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            log.info(f"{request.method} {request.url.path} refused: {refusal.code}")
        response = JSONResponse(
            {"ok": False, "error": refusal.code, "detail": exc.details},
            status_code=refusal.http_status,
        )
        if refusal.ends_session:
            response.delete_cookie(config.SESSION_COOKIE_NAME)
        return response

    @app.get("/health")
    def health():
        svc: ChatService = app.state.chat_service
        return {
            "status": "ok",
            "version": __version__,
            "chat_file": str(svc.records.path),
            "chat_file_exists": svc.records.path.exists(),
            "users_file": str(svc.roster.path),
            "users_file_exists": svc.roster.path.exists(),
        }

    return app


def main() -> None:
    import uvicorn

    setup_logging(config.LOG_LEVEL, Path(config.LOG_FILE) if config.LOG_FILE else None)
    log.info(f"Serving chat from {config.DATA_DIR}")
    uvicorn.run(create_app(), host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
