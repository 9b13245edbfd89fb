#!/usr/bin/env python3
#
# wgplane/api/rpc.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Privileged RPC surface consumed by the delegating backend.

Every endpoint maps to exactly one repository operation. Peer mutations also
reconcile firewall rules here, since the caller cannot touch iptables.
"""

from __future__ import annotations

import logging
import sqlite3

from fastapi import APIRouter, Depends

from ..models.api import RpcInterfaceConfig, RpcPeerAllowedIPs, RpcPeerCreate, RpcPeerRef
from ..services import admin as admin_service
from ..utils.deps import get_conn, get_repo
from .auth import require_rpc_caller
from .response import ok_response

_log = logging.getLogger(__name__)

router = APIRouter(prefix="/rpc", tags=["rpc"], dependencies=[Depends(require_rpc_caller)])

__all__ = ["router"]


@router.get("/interfaces")
async def list_interfaces(repo=Depends(get_repo)):
	return ok_response(data=await repo.list_interfaces())


@router.post("/interfaces")
async def create_interface(payload: RpcInterfaceConfig, repo=Depends(get_repo)):
	return ok_response(data=await repo.create_interface(payload.to_config()))


@router.get("/interfaces/{interface_id}")
async def get_interface(interface_id: str, repo=Depends(get_repo)):
	return ok_response(data=await repo.get_interface(interface_id))


@router.put("/interfaces/{interface_id}")
async def update_interface(interface_id: str, payload: RpcInterfaceConfig, repo=Depends(get_repo)):
	config = payload.to_config()
	config.id = interface_id
	return ok_response(data=await repo.update_interface(config))


@router.delete("/interfaces/{interface_id}")
async def delete_interface(interface_id: str, repo=Depends(get_repo)):
	await repo.delete_interface(interface_id)
	return ok_response()


@router.post("/peers")
async def create_peer(payload: RpcPeerCreate, conn: sqlite3.Connection = Depends(get_conn), repo=Depends(get_repo)):
	peer = await admin_service.create_wireguard_peer(
		conn, repo, payload.interface_id, payload.endpoint, payload.allowed_ips
	)
	_log.info("RPC_PEER_CREATED peer_id=%s... interface=%s", peer.id[:8], payload.interface_id)
	return ok_response(data=peer)


@router.put("/peers/allowed-ips")
async def update_peer_allowed_ips(
	payload: RpcPeerAllowedIPs,
	conn: sqlite3.Connection = Depends(get_conn),
	repo=Depends(get_repo),
):
	await admin_service.update_wireguard_peer_allowed_ips(
		conn, repo, payload.interface_id, payload.peer_id, payload.allowed_ips
	)
	return ok_response()


@router.post("/peers/delete")
async def delete_peer(payload: RpcPeerRef, conn: sqlite3.Connection = Depends(get_conn), repo=Depends(get_repo)):
	await admin_service.delete_wireguard_peer(conn, repo, payload.peer_id)
	_log.info("RPC_PEER_DELETED peer_id=%s...", payload.peer_id[:8])
	return ok_response()


@router.get("/peers/stats")
async def list_peer_stats(repo=Depends(get_repo)):
	return ok_response(data=await repo.list_peer_stats())


@router.get("/configs")
async def list_configs(interface_id: str = "", repo=Depends(get_repo)):
	return ok_response(data=await repo.list_configs(interface_id))


@router.get("/firewall/rules")
async def list_firewall_rules(repo=Depends(get_repo)):
	return ok_response(data=await repo.list_firewall_rules())
