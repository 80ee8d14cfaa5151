from __future__ import annotations

from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from treestore import config
from treestore.api.files import router as files_router
from treestore.api.info import router as info_router
from treestore.api.logs import router as logs_router
from treestore.content.blobs import make_blob_store
from treestore.logging.ndjson import init_logging, log_event
from treestore.nodes.repository import NodeRepository
from treestore.nodes.service import FileTreeService


def _load_dotenvs() -> None:
    """
    Load environment variables from:
    - backend/.env
    - repo-root/.env
    """
    backend_dir = Path(__file__).resolve().parents[1]
    repo_root = backend_dir.parent

    load_dotenv(backend_dir / ".env")
    load_dotenv(repo_root / ".env")


def build_service() -> FileTreeService:
    repo = NodeRepository(config.db_path(), timeout=config.db_timeout())
    return FileTreeService(repo, blobs=make_blob_store(), seed=config.seed_entries())


def create_app(service: Optional[FileTreeService] = None) -> FastAPI:
    """
    Build the HTTP adapter. Pass `service` to serve an existing store
    (tests do this); otherwise one is built from the environment.
    """
    _load_dotenvs()
    try:
        init_logging()
    except Exception:
        pass
    if service is None:
        service = build_service()

    app = FastAPI(title="treestore API", version="0.1.0")
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health() -> dict:
        return {"ok": True}

    @app.middleware("http")
    async def log_exceptions(request, call_next):  # type: ignore[no-untyped-def]
        try:
            return await call_next(request)
        except Exception as e:  # noqa: BLE001
            log_event(
                level="error",
                event="api.exception",
                data={"method": request.method, "path": str(request.url.path), "error": repr(e)},
            )
            # Storage and internal details stay in the log.
            return JSONResponse(
                status_code=500,
                content={"detail": {"error": "internal", "message": "internal error"}},
            )

    @app.on_event("startup")
    async def startup_tasks() -> None:
        log_event(level="info", event="app.startup", data={"db": str(service.repo.path)})

    app.include_router(files_router)
    app.include_router(info_router)
    app.include_router(logs_router)
    return app
