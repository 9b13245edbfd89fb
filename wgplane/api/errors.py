#!/usr/bin/env python3
#
# wgplane/api/errors.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Translate domain errors into HTTP responses."""

from __future__ import annotations

import logging
import sqlite3

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..errors import (
	AlreadyExistsError,
	ExternalOperationError,
	ForbiddenError,
	NotFoundError,
	UnsupportedError,
	ValidationError,
	WgPlaneError,
)

_log = logging.getLogger(__name__)

__all__ = ["status_for", "register_error_handlers"]

_STATUS_BY_ERROR: tuple[tuple[type[WgPlaneError], int], ...] = (
	(NotFoundError, 404),
	(ForbiddenError, 403),
	(AlreadyExistsError, 409),
	(UnsupportedError, 501),
	(ValidationError, 400),
	(ExternalOperationError, 502),
)


def status_for(exc: WgPlaneError) -> int:
	for error_cls, status in _STATUS_BY_ERROR:
		if isinstance(exc, error_cls):
			return status
	return 500


async def _handle_domain_error(request: Request, exc: WgPlaneError) -> JSONResponse:
	status = status_for(exc)
	if status >= 500:
		_log.error(
			"REQUEST_FAILED method=%s path=%s request_id=%s error=%s",
			request.method,
			request.url.path,
			getattr(request.state, "request_id", "-"),
			exc,
		)
	return JSONResponse(
		status_code=status,
		content={
			"status": "error",
			"error": type(exc).__name__,
			"kind": exc.kind,
			"detail": str(exc),
		},
	)


async def _handle_integrity_error(request: Request, exc: sqlite3.IntegrityError) -> JSONResponse:
	_log.warning("INTEGRITY_ERROR path=%s error=%s", request.url.path, exc)
	return JSONResponse(
		status_code=409,
		content={"status": "error", "error": "AlreadyExistsError", "kind": AlreadyExistsError.kind, "detail": "record already exists"},
	)


def register_error_handlers(app: FastAPI) -> None:
	app.add_exception_handler(WgPlaneError, _handle_domain_error)
	app.add_exception_handler(sqlite3.IntegrityError, _handle_integrity_error)
