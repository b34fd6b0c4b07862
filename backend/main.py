"""
Workspace Assistant Backend - FastAPI Application Entry Point
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from routers import assistant, config, files, history
from services.config_manager import ConfigManager
from services.errors import AssistantError
from services.version_trail import VersionTrail
from services.workspace import Workspace

load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    if level is None:
        level = ConfigManager.get_instance().get_config().get("logging", {}).get("level", "INFO")
    logging.basicConfig(
        level=str(level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - startup and shutdown logic"""
    configure_logging()
    logger.info("Starting Workspace Assistant Backend...")
    root = app.state.workspace_root or ConfigManager.get_instance().get_config()["workspace"]["root"]
    workspace = Workspace(root)
    workspace.ensure_root()
    app.state.workspace = workspace
    app.state.version_trail = VersionTrail(workspace)
    try:
        await app.state.version_trail.ensure_repo()
    except AssistantError as e:
        logger.warning("Version trail unavailable: %s", e)
    logger.info("Workspace: %s", workspace.root)

    yield
    logger.info("Shutting down Workspace Assistant Backend...")


async def assistant_error_handler(request: Request, exc: AssistantError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": str(exc), "code": exc.code},
    )


async def os_error_handler(request: Request, exc: OSError) -> JSONResponse:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"ok": False, "error": str(exc), "code": "os_error"})


def create_app(workspace_root: str | Path | None = None) -> FastAPI:
    """Build the application; `workspace_root` overrides the configured root"""
    app = FastAPI(
        title="Workspace Assistant Backend",
        description="Propose, preview, selectively apply and roll back model-authored file changes",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.workspace_root = workspace_root

    # The browser UI is served locally
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AssistantError, assistant_error_handler)
    app.add_exception_handler(OSError, os_error_handler)

    # Include routers
    app.include_router(assistant.router, prefix="/api/assistant", tags=["assistant"])
    app.include_router(history.router, prefix="/api/history", tags=["history"])
    app.include_router(files.router, prefix="/api/files", tags=["files"])
    app.include_router(config.router, prefix="/api/config", tags=["config"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "workspace-assistant-backend"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    server = ConfigManager.get_instance().get_config()["server"]
    uvicorn.run(app, host=server["host"], port=int(server["port"]))
