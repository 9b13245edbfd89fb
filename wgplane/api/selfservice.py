#!/usr/bin/env python3
#
# wgplane/api/selfservice.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""End-user API. The caller is identified by the proxy identity header."""

from __future__ import annotations

import logging
import sqlite3

from fastapi import APIRouter, Depends, Query, Request

from ..models.api import PeerRouteCreate, SelfPeerCreate
from ..services import selfservice
from ..utils.deps import get_conn, get_repo
from ..utils.rate_limit import RATE_LIMIT_PEER_CREATE, limiter
from .auth import get_current_email
from .response import ok_response

_log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/me", tags=["selfservice"])

__all__ = ["router"]


@router.get("/interfaces")
async def list_interfaces(
	email: str = Depends(get_current_email),
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	return ok_response(data=await selfservice.list_interfaces(conn, repo, email))


@router.get("/peers")
async def list_peer_statuses(
	email: str = Depends(get_current_email),
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	return ok_response(data=await selfservice.list_peer_statuses(conn, repo, email))


@router.get("/peer")
async def get_peer(
	interface_id: str = "",
	email: str = Depends(get_current_email),
	conn: sqlite3.Connection = Depends(get_conn),
):
	"""Return the caller's peer, scoped to ``interface_id`` when given."""
	if interface_id:
		return ok_response(data=selfservice.get_peer_for_interface(conn, email, interface_id))
	return ok_response(data=selfservice.get_peer(conn, email))


@router.post("/peers", status_code=201)
@limiter.limit(RATE_LIMIT_PEER_CREATE)
async def create_peer(
	request: Request,
	payload: SelfPeerCreate,
	email: str = Depends(get_current_email),
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	return ok_response(data=await selfservice.create_peer(conn, repo, email, payload.interface_id))


@router.delete("/peers", status_code=204)
async def delete_peer(
	peer_id: str = Query(..., min_length=1, max_length=64),
	email: str = Depends(get_current_email),
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	await selfservice.delete_peer(conn, repo, email, peer_id)


@router.get("/peer-routes")
async def list_peer_routes(
	peer_id: str = Query(..., min_length=1, max_length=64),
	email: str = Depends(get_current_email),
	conn: sqlite3.Connection = Depends(get_conn),
):
	return ok_response(data=selfservice.list_peer_routes(conn, email, peer_id))


@router.post("/peer-routes", status_code=201)
async def create_peer_route(
	payload: PeerRouteCreate,
	email: str = Depends(get_current_email),
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	cidr = await selfservice.create_peer_route(conn, repo, email, payload.peer_id, payload.cidr)
	return ok_response(data={"peer_id": payload.peer_id, "cidr": cidr})


@router.delete("/peer-routes", status_code=204)
async def delete_peer_route(
	peer_id: str = Query(..., min_length=1, max_length=64),
	cidr: str = Query(..., min_length=1, max_length=43),
	email: str = Depends(get_current_email),
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	await selfservice.delete_peer_route(conn, repo, email, peer_id, cidr)
