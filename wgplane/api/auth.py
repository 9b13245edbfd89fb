#!/usr/bin/env python3
#
# wgplane/api/auth.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Caller identification for the three HTTP surfaces.

- admin: static bearer token (``WGPLANE_ADMIN_TOKEN``), disabled when empty
- rpc: shared secret header (``WGPLANE_RPC_TOKEN``), disabled when empty
- self-service: identity header set by the authenticating proxy
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..utils.deps import get_config
from ..wireguard.repo_delegating import RPC_TOKEN_HEADER

_log = logging.getLogger(__name__)
_security = HTTPBearer(auto_error=False)


def _token_matches(expected: str, given: Optional[str]) -> bool:
	return bool(given) and secrets.compare_digest(expected.encode("utf-8"), given.encode("utf-8"))


def require_admin(
	request: Request,
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_security),
	cfg=Depends(get_config),
) -> None:
	if not cfg.admin_token:
		return
	given = credentials.credentials if credentials else None
	if not _token_matches(cfg.admin_token, given):
		_log.warning("ADMIN_AUTH_REJECTED path=%s", request.url.path)
		raise HTTPException(status_code=401, detail="Not authenticated", headers={"WWW-Authenticate": "Bearer"})


def require_rpc_caller(request: Request, cfg=Depends(get_config)) -> None:
	if not cfg.rpc_token:
		return
	if not _token_matches(cfg.rpc_token, request.headers.get(RPC_TOKEN_HEADER)):
		_log.warning("RPC_AUTH_REJECTED path=%s", request.url.path)
		raise HTTPException(status_code=401, detail="Invalid RPC token")


def get_current_email(request: Request, cfg=Depends(get_config)) -> str:
	"""Return the authenticated end-user email supplied by the fronting proxy."""
	email = (request.headers.get(cfg.email_header) or "").strip()
	if not email:
		raise HTTPException(status_code=401, detail="Missing authenticated identity")
	return email.lower()
