#!/usr/bin/env python3
#
# wgplane/api/admin.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Administrator API: interfaces, grants, peers and routes."""

from __future__ import annotations

import logging
import sqlite3

from fastapi import APIRouter, Depends, Query

from ..models.api import (
	AdminPeerCreate,
	AllowedEmailCreate,
	InterfaceCreate,
	InterfaceUpdate,
	PeerRouteCreate,
	RouteCreate,
)
from ..services import admin as admin_service
from ..services.common import require_interface_config
from ..utils.deps import get_conn, get_repo
from .auth import require_admin
from .response import ok_response

_log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

__all__ = ["router"]


# ─── interfaces ──────────────────────────────────────────────────────────────

@router.get("/interfaces")
async def list_interfaces(conn: sqlite3.Connection = Depends(get_conn), repo=Depends(get_repo)):
	return ok_response(data=await admin_service.list_interfaces(conn, repo))


@router.post("/interfaces", status_code=201)
async def create_interface(
	payload: InterfaceCreate,
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	return ok_response(data=await admin_service.create_interface(conn, repo, payload.to_config()))


@router.get("/interfaces/{interface_id}")
async def get_interface(interface_id: str, conn: sqlite3.Connection = Depends(get_conn), repo=Depends(get_repo)):
	return ok_response(data=await admin_service.get_interface(conn, repo, interface_id))


@router.put("/interfaces/{interface_id}")
async def update_interface(
	interface_id: str,
	payload: InterfaceUpdate,
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	return ok_response(data=await admin_service.update_interface(conn, repo, payload.to_config(interface_id)))


@router.delete("/interfaces/{interface_id}", status_code=204)
async def delete_interface(interface_id: str, conn: sqlite3.Connection = Depends(get_conn), repo=Depends(get_repo)):
	await admin_service.delete_interface(conn, repo, interface_id)


# ─── allowed emails ──────────────────────────────────────────────────────────

@router.get("/interfaces/{interface_id}/emails")
async def list_allowed_emails(interface_id: str, conn: sqlite3.Connection = Depends(get_conn)):
	return ok_response(data=admin_service.list_allowed_emails(conn, interface_id))


@router.post("/interfaces/{interface_id}/emails", status_code=201)
async def create_allowed_email(
	interface_id: str,
	payload: AllowedEmailCreate,
	conn: sqlite3.Connection = Depends(get_conn),
):
	admin_service.create_allowed_email(conn, interface_id, payload.email)
	return ok_response(data={"interface_id": interface_id, "email": payload.email})


@router.delete("/interfaces/{interface_id}/emails", status_code=204)
async def delete_allowed_email(
	interface_id: str,
	email: str = Query(..., min_length=1, max_length=254),
	conn: sqlite3.Connection = Depends(get_conn),
):
	admin_service.delete_allowed_email(conn, interface_id, email.strip().lower())


# ─── interface routes ────────────────────────────────────────────────────────

@router.get("/interfaces/{interface_id}/routes")
async def list_interface_routes(interface_id: str, conn: sqlite3.Connection = Depends(get_conn)):
	return ok_response(data=admin_service.list_interface_routes(conn, interface_id))


@router.post("/interfaces/{interface_id}/routes", status_code=201)
async def create_interface_route(
	interface_id: str,
	payload: RouteCreate,
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	cidr = await admin_service.create_interface_route(conn, repo, interface_id, payload.cidr)
	return ok_response(data={"interface_id": interface_id, "cidr": cidr})


@router.delete("/interfaces/{interface_id}/routes", status_code=204)
async def delete_interface_route(
	interface_id: str,
	cidr: str = Query(..., min_length=1, max_length=43),
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	await admin_service.delete_interface_route(conn, repo, interface_id, cidr)


@router.post("/interfaces/{interface_id}/routes/apply")
async def apply_allowed_routes(interface_id: str, conn: sqlite3.Connection = Depends(get_conn), repo=Depends(get_repo)):
	require_interface_config(conn, interface_id)
	changed = await admin_service.apply_allowed_routes(conn, repo, interface_id)
	return ok_response(data={"interface_id": interface_id, "changed": changed})


# ─── peers ───────────────────────────────────────────────────────────────────

@router.get("/peers")
async def list_peers(interface_id: str = "", conn: sqlite3.Connection = Depends(get_conn)):
	return ok_response(data=admin_service.list_peers(conn, interface_id))


@router.post("/peers", status_code=201)
async def create_peer(
	payload: AdminPeerCreate,
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	return ok_response(data=await admin_service.create_peer(conn, repo, payload.interface_id, payload.email))


# Peer ids are base64 and may contain "/", so they travel as query parameters.
@router.delete("/peers", status_code=204)
async def delete_peer(
	peer_id: str = Query(..., min_length=1, max_length=64),
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	await admin_service.delete_peer(conn, repo, peer_id)


@router.get("/peer-routes")
async def list_peer_routes(
	peer_id: str = Query(..., min_length=1, max_length=64),
	conn: sqlite3.Connection = Depends(get_conn),
):
	return ok_response(data=admin_service.list_peer_routes(conn, peer_id))


@router.post("/peer-routes", status_code=201)
async def create_peer_route(
	payload: PeerRouteCreate,
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	cidr = await admin_service.create_peer_route(conn, repo, payload.peer_id, payload.cidr)
	return ok_response(data={"peer_id": payload.peer_id, "cidr": cidr})


@router.delete("/peer-routes", status_code=204)
async def delete_peer_route(
	peer_id: str = Query(..., min_length=1, max_length=64),
	cidr: str = Query(..., min_length=1, max_length=43),
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	await admin_service.delete_peer_route(conn, repo, peer_id, cidr)


# ─── live state ──────────────────────────────────────────────────────────────

@router.get("/stats")
async def list_peer_stats(repo=Depends(get_repo)):
	return ok_response(data=await admin_service.list_peer_stats(repo))


@router.get("/firewall/rules")
async def get_firewall_rules(repo=Depends(get_repo)):
	return ok_response(data=await admin_service.get_firewall_rules(repo))


@router.get("/configs")
async def list_wireguard_configs(interface_id: str = "", repo=Depends(get_repo)):
	return ok_response(data=await admin_service.list_wireguard_configs(repo, interface_id))
