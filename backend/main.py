#!/usr/bin/env python3
"""
compose-status - single page status dashboard for Docker Compose projects

Polls the Docker daemon for running containers, groups them by compose
project, remembers containers that went away ("last seen 5 minutes ago") and
forgets them after the clean cutoff.

Run with:
    compose-status --page-title "my server"
or:
    uvicorn main:create_app --factory
"""

import argparse
import logging
import sys
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from config.settings import StatusSettings, UNGROUPED, setup_logging
from docker_monitor.host_metrics import HostMetricsSampler
from docker_monitor.monitor import StatusMonitor
from docker_monitor.reconciler import ReconciliationEngine
from docker_monitor.snapshot_source import DockerSnapshotSource
from docker_monitor.state_store import StateStore
from health_check.http_checker import HttpHealthChecker
from web.rendering import templates

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

# Seconds the in-flight pass gets to finish on shutdown before it is cancelled
SHUTDOWN_GRACE = 10


def build_monitor(settings: StatusSettings) -> StatusMonitor:
    """Wire the production collaborators from a fully-populated settings value"""
    return StatusMonitor(
        settings=settings,
        source=DockerSnapshotSource(None, settings),
        engine=ReconciliationEngine(
            clean_cutoff=timedelta(seconds=settings.clean_cutoff),
            labels=settings.labels,
        ),
        checker=HttpHealthChecker(settings.labels, settings.health_timeout),
        sampler=HostMetricsSampler(settings.history_capacity),
        store=StateStore(settings.save_path) if settings.save_path else None,
    )


def create_app(settings: Optional[StatusSettings] = None, monitor: Optional[StatusMonitor] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration; loaded from CS_* environment variables when omitted
        monitor: Pre-built monitor (tests); built from settings when omitted
    """
    if settings is None:
        settings = StatusSettings.from_env()
        setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifecycle"""
        logger.info(f"Starting compose-status {APP_VERSION}...")
        status_monitor: StatusMonitor = app.state.monitor
        if status_monitor is None:
            status_monitor = build_monitor(settings)
            app.state.monitor = status_monitor

        status_monitor.load_state()
        status_monitor.start()

        yield

        logger.info("Shutting down compose-status...")
        await status_monitor.stop(timeout=SHUTDOWN_GRACE)

        try:
            await status_monitor.checker.close()
        except Exception as e:
            logger.error(f"Error closing health check client: {e}")

        close_source = getattr(status_monitor.source, 'close', None)
        if close_source is not None:
            close_source()

        app.state.flush_ok = status_monitor.flush()

    app = FastAPI(
        title="compose-status",
        version=APP_VERSION,
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.monitor = monitor
    app.state.flush_ok = True

    @app.get("/", response_class=HTMLResponse, tags=["system"])
    async def dashboard(request: Request):
        """Render the status page from the last published view"""
        view = request.app.state.monitor.view
        return templates.TemplateResponse(request, "dashboard.html", {
            "view": view,
            "page_title": settings.page_title,
            "show_credit": settings.show_credit,
            "ungrouped": UNGROUPED,
            "refresh_seconds": max(settings.scan_interval, 5),
        })

    @app.get("/health", tags=["system"])
    async def health_check(request: Request):
        """Health check endpoint for Docker health checks"""
        status_monitor = request.app.state.monitor
        return {
            "status": "healthy",
            "service": "compose-status",
            "last_error": status_monitor.last_error,
        }

    @app.get("/api/status", tags=["system"])
    async def get_status(request: Request):
        """Last published view as JSON"""
        return request.app.state.monitor.view.model_dump(mode="json")

    return app


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="compose-status",
        description="Status page for Docker Compose projects. "
                    "Every flag can also be set with a CS_ environment variable.",
    )
    parser.add_argument("--page-title", help="title to show at the top of the page")
    parser.add_argument("--clean-cutoff", type=int,
                        help="seconds to wait before forgetting about a down container (default 3 days)")
    parser.add_argument("--scan-interval", type=int, help="seconds between background scans (default 5)")
    parser.add_argument("--history-window", type=int, help="seconds of cpu/temperature history to chart (default 600)")
    parser.add_argument("--host", help="bind address (default 0.0.0.0)")
    parser.add_argument("--port", type=int, help="listen port (default 9293)")
    parser.add_argument("--save-path", help="path to the resume file, empty to disable (default save.json)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    return parser.parse_args(argv)


def run(argv: Optional[List[str]] = None):
    """Console entry point"""
    import uvicorn

    args = _parse_args(argv)
    try:
        settings = StatusSettings.from_env().with_overrides(
            page_title=args.page_title,
            clean_cutoff=args.clean_cutoff,
            scan_interval=args.scan_interval,
            history_window=args.history_window,
            host=args.host,
            port=args.port,
            save_path=args.save_path,
            log_level=args.log_level,
        )
    except ValueError as e:
        print(f"error parsing configuration: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(settings)
    app = create_app(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)

    if not app.state.flush_ok:
        sys.exit(1)


if __name__ == "__main__":
    run()
