#!/usr/bin/env python3
#
# wgplane/main.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""FastAPI application factory and startup lifecycle wiring."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .api import admin as admin_api
from .api import rpc as rpc_api
from .api import selfservice as selfservice_api
from .api.errors import register_error_handlers
from .api.response import ok_response
from .db.sqlite_runtime import close_all_connections, close_connection, connect
from .db.sqlite_schema import init_schema
from .utils.config import Config, load_config
from .utils.rate_limit import limiter
from .utils.request_id import RequestIDMiddleware
from .wireguard.bootstrap import bootstrap_wireguard
from .wireguard.repository import WireguardRepository, build_repository
from .wireguard.runner import CommandRunner, SubprocessRunner

_log = logging.getLogger(__name__)

# ANSI color codes for log levels (if TTY)
_LOG_COLORS = {
	"DEBUG": "\033[36m",    # Cyan
	"INFO": "\033[32m",     # Green
	"WARNING": "\033[33m",  # Yellow
	"ERROR": "\033[31m",    # Red
	"CRITICAL": "\033[35m", # Magenta
}
_RESET = "\033[0m"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class _ColoredFormatter(logging.Formatter):
	"""Custom formatter that adds color to log levels in TTY."""

	def format(self, record):
		orig_levelname = record.levelname
		if orig_levelname in _LOG_COLORS:
			record.levelname = f"{_LOG_COLORS[orig_levelname]}{orig_levelname:<8}{_RESET}"
		else:
			record.levelname = f"{orig_levelname:<8}"
		try:
			return super().format(record)
		finally:
			record.levelname = orig_levelname


def _setup_logging(log_level: str) -> None:
	"""Configure unified logging for the entire application."""
	level = getattr(logging, log_level, logging.INFO)

	if sys.stdout.isatty():
		formatter: logging.Formatter = _ColoredFormatter(
			fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
			datefmt=_DATE_FORMAT,
		)
	else:
		formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

	# force=True removes any pre-existing handlers (e.g. from uvicorn)
	logging.basicConfig(
		level=level,
		handlers=[logging.StreamHandler(sys.stdout)],
		force=True,
	)
	for handler in logging.root.handlers:
		handler.setFormatter(formatter)

	for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
		logger = logging.getLogger(name)
		logger.handlers.clear()
		logger.setLevel(level)
		logger.propagate = True

	# Quiet down noisy third-party libraries
	for name in ("httpcore", "httpx"):
		logging.getLogger(name).setLevel(logging.WARNING)


@asynccontextmanager
async def _lifespan(app: FastAPI):
	"""Application lifespan manager."""
	cfg: Config = app.state.cfg
	repo: WireguardRepository = app.state.repo

	# ─── BOOTSTRAP ───────────────────────────────────────────
	conn = connect(cfg.db_path)
	try:
		init_schema(conn)
		if cfg.backend == "command":
			try:
				await bootstrap_wireguard(conn, repo, app.state.runner, cfg.system_interfaces)
			except Exception as exc:
				_log.critical("BOOTSTRAP_FAILED error=%s", exc)
				raise
	finally:
		close_connection(conn)

	_log.info(
		"wgplane started (role=%s, backend=%s, pid=%d)",
		cfg.role,
		cfg.backend,
		os.getpid(),
	)

	yield

	# ─── SHUTDOWN ────────────────────────────────────────────
	aclose = getattr(repo, "aclose", None)
	if aclose is not None:
		await aclose()
	closed_connections = close_all_connections()
	_log.info("SQLITE_SHUTDOWN connections_closed=%d", closed_connections)
	_log.info("wgplane shutdown complete")


def create_app(
	cfg: Optional[Config] = None,
	*,
	repo: Optional[WireguardRepository] = None,
	runner: Optional[CommandRunner] = None,
) -> FastAPI:
	"""Application factory; the role decides which API surfaces are mounted."""
	cfg = cfg or load_config()
	_setup_logging(cfg.log_level)

	if runner is None and cfg.backend == "command":
		runner = SubprocessRunner(timeout=cfg.command_timeout)
	if repo is None:
		repo = build_repository(cfg, runner=runner)

	app = FastAPI(
		title="wgplane",
		description="WireGuard control plane",
		version="0.1.0",
		lifespan=_lifespan,
		docs_url="/api/docs",
		redoc_url="/api/redoc",
	)

	# Store config in app state
	app.state.cfg = cfg
	app.state.db_path = cfg.db_path
	app.state.repo = repo
	app.state.runner = runner

	# ─── MIDDLEWARE ──────────────────────────────────────────
	app.add_middleware(RequestIDMiddleware)

	# Rate limiting
	app.state.limiter = limiter
	app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
	register_error_handlers(app)

	# ─── API ROUTES ──────────────────────────────────────────
	if cfg.role == "admin":
		app.include_router(admin_api.router)
		app.include_router(rpc_api.router)
	else:
		app.include_router(selfservice_api.router)

	@app.get("/healthz", tags=["health"])
	async def healthz():
		return ok_response(data={"role": cfg.role, "backend": cfg.backend})

	return app
