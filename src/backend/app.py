from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Mapping, Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .analytics import BehaviorLog, create_analytics_router
from .catalog import AppScanner, create_catalog_router, load_categories
from .commerce import create_commerce_router
from .errors import setup_exception_handlers
from .fs import ensure_data_dirs, resolve_data_paths
from .net import UpstreamProxy
from .net.api import create_upstream_router
from .request_log import RequestLogMiddleware
from .settings.env import apply_environment, data_root as env_data_root
from .settings.models import ServerConfig
from .settings.store import load_server_config
from .tasks import DownloadLog, TaskCoordinator, TaskLog, TaskStore, create_task_router
from .tasks.models import format_utc_z, utc_now

logger = logging.getLogger(__name__)

SERVER_NAME = "Head Unit App Store"
SERVER_VERSION = "1.0.0"


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def load_config(
    data_root: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None
) -> tuple[Path, ServerConfig]:
    """Resolve the data root and read its server config with environment overrides applied."""
    root = Path(data_root) if data_root is not None else env_data_root(_repo_root() / "apps", environ)
    paths = resolve_data_paths(root)
    config = load_server_config(paths.server_config)
    return paths.root, apply_environment(config, environ)


def create_app(
    *,
    data_root: Optional[Path] = None,
    config: Optional[ServerConfig] = None,
    static_dir: Optional[Path] = None,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> FastAPI:
    if config is None:
        data_root, config = load_config(data_root, environ)
    elif data_root is None:
        data_root = env_data_root(_repo_root() / "apps", environ)

    paths = resolve_data_paths(Path(data_root))
    static_dir = Path(static_dir) if static_dir is not None else _repo_root() / "static"

    scanner = AppScanner(store_dir=paths.store)
    categories = load_categories(paths.categories)
    task_log = TaskLog(path=paths.tasks_log)
    download_log = DownloadLog(path=paths.downloads_log)
    behavior_log = BehaviorLog(path=paths.behavior_log)
    coordinator = TaskCoordinator(
        store=TaskStore(),
        task_log=task_log,
        download_log=download_log,
        config=config,
        catalog=scanner,
    )
    upstream_ok, upstream_error = config.upstream.validate()
    if not upstream_ok:
        logger.warning("Upstream config is invalid, relayed calls will fail: %s", upstream_error)
    proxy = UpstreamProxy(config.upstream, transport=upstream_transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            ensure_data_dirs(paths)
        except OSError as exc:
            logger.error("Cannot create data directories under %s: %s", paths.root, exc)

        apps_loaded = await asyncio.to_thread(scanner.scan)
        restored = await coordinator.restore()
        logger.info(
            "App store ready (%s mode): %d apps loaded, %d tasks restored, data root %s",
            "development" if config.dev_mode else "production",
            apps_loaded,
            restored,
            paths.root,
        )
        yield

    app = FastAPI(title="headunit-appstore", version=SERVER_VERSION, lifespan=lifespan)
    setup_exception_handlers(app)

    app.add_middleware(RequestLogMiddleware, log_requests=config.logging.log_requests, dev_mode=config.dev_mode)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    app.include_router(create_catalog_router(scanner=scanner, categories=categories, config=config))
    app.include_router(create_task_router(coordinator=coordinator))
    app.include_router(create_commerce_router(scanner=scanner, download_log=download_log))
    app.include_router(create_analytics_router(behavior_log=behavior_log))
    app.include_router(create_upstream_router(proxy=proxy))

    @app.get("/health")
    async def health() -> dict[str, Any]:
        last_scan = scanner.last_scan
        return {
            "status": "healthy",
            "timestamp": format_utc_z(utc_now()),
            "server": SERVER_NAME,
            "version": SERVER_VERSION,
            "apps_loaded": len(scanner),
            "last_scan": format_utc_z(last_scan) if last_scan else None,
        }

    app.state.config = config
    app.state.data_paths = paths
    app.state.scanner = scanner
    app.state.coordinator = coordinator
    app.state.behavior_log = behavior_log
    app.state.upstream = proxy

    if static_dir.is_dir():
        app.mount("/static", StaticFiles(directory=str(static_dir)), name="static")
    else:
        logger.info("Static directory %s not found, /static is not served", static_dir)

    return app


app = create_app()
