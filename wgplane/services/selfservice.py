#!/usr/bin/env python3
#
# wgplane/services/selfservice.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""End-user use cases keyed by an authenticated email.

A caller sees only interfaces it holds a grant for, owns at most one peer per
interface, and may touch only peers whose record carries its email.
"""

from __future__ import annotations

import logging
import sqlite3

from ..db import sqlite_grants as grants_db
from ..db import sqlite_interfaces as interfaces_db
from ..db import sqlite_peers as peers_db
from ..db import sqlite_routes as routes_db
from ..errors import (
	AlreadyExistsError,
	EmailNotAllowedError,
	ForbiddenError,
	PeerNotFoundError,
	RecordNotFoundError,
	ValidationError,
)
from ..models.wireguard import LiveInterface, PeerRecord, PeerRoute, PeerStatus
from ..wireguard.allowed_ips import parse_ipv4_cidr
from ..wireguard.repository import WireguardRepository
from .common import (
	effective_allowed_ips,
	interface_lock,
	interface_route_cidrs,
	push_peer_destinations,
	remove_firewall,
	require,
	require_interface_config,
	sync_firewall,
)

_log = logging.getLogger(__name__)


def _require_grant(conn: sqlite3.Connection, record: PeerRecord, email: str) -> PeerRecord:
	if not grants_db.grant_exists(conn, record.interface_id, email):
		raise ForbiddenError("peer access forbidden")
	return record


def _owned_peer(conn: sqlite3.Connection, email: str, peer_id: str) -> PeerRecord:
	require(email=email, peer_id=peer_id)
	record = peers_db.get_peer_by_peer_id(conn, peer_id)
	if record is None:
		raise PeerNotFoundError(peer_id)
	if record.email != email:
		raise ForbiddenError("peer access forbidden")
	return record


# ─────────────────────────────────────────────────────────────────────────────
# Queries
# ─────────────────────────────────────────────────────────────────────────────

async def list_interfaces(conn: sqlite3.Connection, repo: WireguardRepository, email: str) -> list[LiveInterface]:
	"""Live interfaces the email holds a grant for, with admin display names."""
	require(email=email)
	allowed = set(grants_db.list_interface_ids_by_email(conn, email))
	if not allowed:
		return []
	names = {config.id: config.name for config in interfaces_db.list_interfaces(conn)}

	items: list[LiveInterface] = []
	for iface in await repo.list_interfaces():
		if iface.id not in allowed:
			continue
		if names.get(iface.id):
			iface.name = names[iface.id]
		items.append(iface)
	return items


async def list_peer_statuses(conn: sqlite3.Connection, repo: WireguardRepository, email: str) -> list[PeerStatus]:
	require(email=email)
	records = peers_db.list_peers_by_email(conn, email)
	if not records:
		return []
	stats = {stat.peer_id: stat for stat in await repo.list_peer_stats()}
	names = {config.id: config.name for config in interfaces_db.list_interfaces(conn)}

	items: list[PeerStatus] = []
	for record in records:
		stat = stats.get(record.peer_id)
		items.append(PeerStatus(
			peer_id=record.peer_id,
			interface_id=record.interface_id,
			interface_name=names.get(record.interface_id, ""),
			rx_bytes=stat.rx_bytes if stat else 0,
			tx_bytes=stat.tx_bytes if stat else 0,
			last_handshake_at=stat.last_handshake_at if stat else 0,
		))
	return items


def get_peer(conn: sqlite3.Connection, email: str) -> PeerRecord:
	require(email=email)
	record = peers_db.get_peer_by_email(conn, email)
	if record is None:
		raise PeerNotFoundError()
	return _require_grant(conn, record, email)


def get_peer_for_interface(conn: sqlite3.Connection, email: str, interface_id: str) -> PeerRecord:
	require(email=email, interface_id=interface_id)
	record = peers_db.get_peer_by_email_and_interface(conn, email, interface_id)
	if record is None:
		raise PeerNotFoundError()
	return _require_grant(conn, record, email)


# ─────────────────────────────────────────────────────────────────────────────
# Peer lifecycle
# ─────────────────────────────────────────────────────────────────────────────

async def create_peer(conn: sqlite3.Connection, repo: WireguardRepository, email: str, interface_id: str) -> PeerRecord:
	"""Admit one peer for (email, interface).

	The grant and duplicate checks run before any live state is touched.
	"""
	require(email=email, interface_id=interface_id)
	if not grants_db.grant_exists(conn, interface_id, email):
		raise EmailNotAllowedError(email, interface_id)
	if peers_db.get_peer_by_email_and_interface(conn, email, interface_id) is not None:
		raise AlreadyExistsError("peer already exists")
	config = require_interface_config(conn, interface_id)
	if not config.endpoint:
		raise ValidationError("endpoint is required")

	async with interface_lock(repo, interface_id):
		# Re-check under the lock: a concurrent request may have won.
		if peers_db.get_peer_by_email_and_interface(conn, email, interface_id) is not None:
			raise AlreadyExistsError("peer already exists")
		routes = interface_route_cidrs(conn, interface_id)
		peer = await repo.create_peer(interface_id, config.endpoint, routes)
		await sync_firewall(repo, interface_id, peer.allowed_ip, routes)
		record = peers_db.create_peer(conn, PeerRecord(
			email=email,
			peer_id=peer.id,
			interface_id=interface_id,
			allowed_ip=peer.allowed_ip,
			config=peer.config,
		))
	_log.info("SELF_PEER_CREATED peer_id=%s... interface=%s allowed_ip=%s", peer.id[:8], interface_id, peer.allowed_ip)
	return record


async def delete_peer(conn: sqlite3.Connection, repo: WireguardRepository, email: str, peer_id: str) -> None:
	record = _owned_peer(conn, email, peer_id)
	async with interface_lock(repo, record.interface_id):
		await remove_firewall(repo, record.allowed_ip)
		await repo.delete_peer(record.peer_id)
	routes_db.delete_peer_routes_by_peer(conn, record.peer_id)
	peers_db.delete_peer_by_peer_id(conn, record.peer_id)
	_log.info("SELF_PEER_DELETED peer_id=%s... interface=%s", peer_id[:8], record.interface_id)


# ─────────────────────────────────────────────────────────────────────────────
# Peer routes
# ─────────────────────────────────────────────────────────────────────────────

def list_peer_routes(conn: sqlite3.Connection, email: str, peer_id: str) -> list[PeerRoute]:
	_owned_peer(conn, email, peer_id)
	return routes_db.list_peer_routes(conn, peer_id)


async def create_peer_route(conn: sqlite3.Connection, repo: WireguardRepository, email: str, peer_id: str, cidr: str) -> str:
	record = _owned_peer(conn, email, peer_id)
	require(cidr=cidr)
	cidr = parse_ipv4_cidr(cidr)
	routes_db.create_peer_route(conn, peer_id, cidr)
	async with interface_lock(repo, record.interface_id):
		await push_peer_destinations(conn, repo, record, effective_allowed_ips(conn, record))
	_log.info("SELF_PEER_ROUTE_CREATED peer_id=%s... cidr=%s", peer_id[:8], cidr)
	return cidr


async def delete_peer_route(conn: sqlite3.Connection, repo: WireguardRepository, email: str, peer_id: str, cidr: str) -> None:
	record = _owned_peer(conn, email, peer_id)
	require(cidr=cidr)
	cidr = parse_ipv4_cidr(cidr)
	if not routes_db.delete_peer_route(conn, peer_id, cidr):
		raise RecordNotFoundError(f"peer route not found: {cidr}")
	async with interface_lock(repo, record.interface_id):
		await push_peer_destinations(conn, repo, record, effective_allowed_ips(conn, record))
	_log.info("SELF_PEER_ROUTE_DELETED peer_id=%s... cidr=%s", peer_id[:8], cidr)
