#!/usr/bin/env python3
#
# wgplane/services/admin.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Administrative use cases: interfaces, grants, peers and routes.

No ownership checks beyond existence. Multi-step sequences are not
transactional: live state is mutated first, records are written after, and
a failure part-way is raised to the caller as-is.
"""

from __future__ import annotations

import dataclasses
import logging
import sqlite3
from typing import Optional, Sequence

from ..db import sqlite_grants as grants_db
from ..db import sqlite_interfaces as interfaces_db
from ..db import sqlite_peers as peers_db
from ..db import sqlite_routes as routes_db
from ..errors import AlreadyExistsError, RecordNotFoundError, ValidationError
from ..models.wireguard import (
	AdminInterface,
	AllowedEmail,
	InterfaceConfig,
	InterfaceRoute,
	LiveInterface,
	PeerRecord,
	PeerRoute,
	PeerStat,
	RunningConfig,
	WireguardPeer,
)
from ..wireguard.allocator import parse_interface_address
from ..wireguard.allowed_ips import normalize_create_allowed_ips, parse_ipv4_cidr, validate_interface_id
from ..wireguard.repository import WireguardRepository
from .common import (
	effective_allowed_ips,
	interface_lock,
	interface_route_cidrs,
	push_peer_destinations,
	remove_firewall,
	require,
	require_interface_config,
	require_peer_record,
	sync_firewall,
)

_log = logging.getLogger(__name__)


def _overlay(live: LiveInterface, config: InterfaceConfig) -> AdminInterface:
	return AdminInterface(
		id=live.id,
		name=config.name,
		address=live.address,
		listen_port=live.listen_port,
		public_key=live.public_key,
		mtu=live.mtu,
		endpoint=config.endpoint,
	)


def validate_interface_config(config: InterfaceConfig) -> None:
	require(
		interface_id=config.id,
		name=config.name,
		address=config.address,
		listen_port=config.listen_port,
		mtu=config.mtu,
		endpoint=config.endpoint,
	)
	validate_interface_id(config.id)
	parse_interface_address(config.address)
	if not 1 <= config.listen_port <= 65535:
		raise ValidationError("listen port out of range")
	if not 576 <= config.mtu <= 65535:
		raise ValidationError("mtu out of range")


# ─────────────────────────────────────────────────────────────────────────────
# Interfaces
# ─────────────────────────────────────────────────────────────────────────────

async def list_interfaces(conn: sqlite3.Connection, repo: WireguardRepository) -> list[AdminInterface]:
	return [
		_overlay(await repo.get_interface(config.id), config)
		for config in interfaces_db.list_interfaces(conn)
	]


async def get_interface(conn: sqlite3.Connection, repo: WireguardRepository, interface_id: str) -> AdminInterface:
	config = require_interface_config(conn, interface_id)
	return _overlay(await repo.get_interface(interface_id), config)


async def create_interface(conn: sqlite3.Connection, repo: WireguardRepository, config: InterfaceConfig) -> AdminInterface:
	validate_interface_config(config)
	if interfaces_db.get_interface(conn, config.id) is not None:
		raise AlreadyExistsError(f"interface already exists: {config.id}")

	live = await repo.create_interface(config)
	interfaces_db.create_interface(conn, config)
	_log.info("ADMIN_INTERFACE_CREATED interface=%s address=%s", config.id, config.address)
	return _overlay(live, config)


async def update_interface(conn: sqlite3.Connection, repo: WireguardRepository, config: InterfaceConfig) -> AdminInterface:
	"""Update an interface; empty or zero fields keep their stored values."""
	current = require_interface_config(conn, config.id)
	merged = dataclasses.replace(
		config,
		name=config.name or current.name,
		address=config.address or current.address,
		listen_port=config.listen_port or current.listen_port,
		mtu=config.mtu or current.mtu,
		endpoint=config.endpoint or current.endpoint,
	)
	validate_interface_config(merged)

	live = await repo.update_interface(merged)
	interfaces_db.update_interface(conn, merged)
	_log.info("ADMIN_INTERFACE_UPDATED interface=%s", merged.id)
	return _overlay(live, merged)


async def delete_interface(conn: sqlite3.Connection, repo: WireguardRepository, interface_id: str) -> None:
	"""Cascade: firewall rules, live interface, routes, peers, grants, config."""
	require_interface_config(conn, interface_id)
	peers = peers_db.list_peers_by_interface(conn, interface_id)

	async with interface_lock(repo, interface_id):
		for peer in peers:
			await remove_firewall(repo, peer.allowed_ip)
		await repo.delete_interface(interface_id)

	for peer in peers:
		routes_db.delete_peer_routes_by_peer(conn, peer.peer_id)
	routes_db.delete_interface_routes_by_interface(conn, interface_id)
	peers_db.delete_peers_by_interface(conn, interface_id)
	grants_db.delete_grants_by_interface(conn, interface_id)
	interfaces_db.delete_interface(conn, interface_id)
	_log.info("ADMIN_INTERFACE_DELETED interface=%s peers=%d", interface_id, len(peers))


# ─────────────────────────────────────────────────────────────────────────────
# Access grants
# ─────────────────────────────────────────────────────────────────────────────

def list_allowed_emails(conn: sqlite3.Connection, interface_id: str) -> list[AllowedEmail]:
	require_interface_config(conn, interface_id)
	return grants_db.list_grants_by_interface(conn, interface_id)


def create_allowed_email(conn: sqlite3.Connection, interface_id: str, email: str) -> None:
	require(interface_id=interface_id, email=email)
	require_interface_config(conn, interface_id)
	grants_db.create_grant(conn, interface_id, email)
	_log.info("GRANT_CREATED interface=%s", interface_id)


def delete_allowed_email(conn: sqlite3.Connection, interface_id: str, email: str) -> None:
	require(interface_id=interface_id, email=email)
	require_interface_config(conn, interface_id)
	if not grants_db.delete_grant(conn, interface_id, email):
		raise RecordNotFoundError("allowed email not found")
	_log.info("GRANT_DELETED interface=%s", interface_id)


# ─────────────────────────────────────────────────────────────────────────────
# Peers
# ─────────────────────────────────────────────────────────────────────────────

def list_peers(conn: sqlite3.Connection, interface_id: str = "") -> list[PeerRecord]:
	return peers_db.list_peers(conn, interface_id or None)


async def create_peer(
	conn: sqlite3.Connection,
	repo: WireguardRepository,
	interface_id: str,
	email: str = "",
) -> PeerRecord:
	"""Admit a persisted peer, optionally owned by ``email``."""
	require(interface_id=interface_id)
	config = require_interface_config(conn, interface_id)
	if email and peers_db.get_peer_by_email_and_interface(conn, email, interface_id) is not None:
		raise AlreadyExistsError("peer already exists")

	async with interface_lock(repo, interface_id):
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
	_log.info("ADMIN_PEER_CREATED peer_id=%s... interface=%s", peer.id[:8], interface_id)
	return record


async def delete_peer(conn: sqlite3.Connection, repo: WireguardRepository, peer_id: str) -> None:
	record = require_peer_record(conn, peer_id)
	async with interface_lock(repo, record.interface_id):
		await remove_firewall(repo, record.allowed_ip)
		await repo.delete_peer(record.peer_id)
	routes_db.delete_peer_routes_by_peer(conn, record.peer_id)
	peers_db.delete_peer_by_peer_id(conn, record.peer_id)
	_log.info("ADMIN_PEER_DELETED peer_id=%s... interface=%s", peer_id[:8], record.interface_id)


async def create_wireguard_peer(
	conn: sqlite3.Connection,
	repo: WireguardRepository,
	interface_id: str,
	endpoint: str,
	allowed_ips: Sequence[str],
) -> WireguardPeer:
	"""Install a live peer and its firewall rules without persisting a record."""
	require(interface_id=interface_id)
	config = require_interface_config(conn, interface_id)
	endpoint = endpoint or config.endpoint

	async with interface_lock(repo, interface_id):
		normalized = normalize_create_allowed_ips(allowed_ips, interface_route_cidrs(conn, interface_id))
		peer = await repo.create_peer(interface_id, endpoint, normalized)
		await sync_firewall(repo, interface_id, peer.allowed_ip, normalized)
	return peer


async def delete_wireguard_peer(conn: sqlite3.Connection, repo: WireguardRepository, peer_id: str) -> None:
	"""Remove a live peer after dropping its firewall rules.

	Without a stored record the peer's own address is read from live state.
	"""
	require(peer_id=peer_id)
	record = peers_db.get_peer_by_peer_id(conn, peer_id)
	if record is not None:
		address: Optional[str] = record.allowed_ip
	elif repo.firewall_capable:
		address = await repo.find_peer_address(peer_id)
	else:
		address = None
	if address:
		await remove_firewall(repo, address)
	await repo.delete_peer(peer_id)


async def update_wireguard_peer_allowed_ips(
	conn: sqlite3.Connection,
	repo: WireguardRepository,
	interface_id: str,
	peer_id: str,
	allowed_ips: Sequence[str],
) -> None:
	require(interface_id=interface_id, peer_id=peer_id, allowed_ips=list(allowed_ips))
	normalized = [parse_ipv4_cidr(cidr) for cidr in allowed_ips]

	async with interface_lock(repo, interface_id):
		record = peers_db.get_peer_by_peer_id(conn, peer_id)
		if record is not None:
			await push_peer_destinations(conn, repo, record, normalized)
			return

		address = await repo.find_peer_address(peer_id, interface_id) if repo.firewall_capable else None
		await repo.update_peer_allowed_ips(interface_id, peer_id, normalized)
		if address is None:
			_log.warning("FIREWALL_SYNC_SKIPPED peer_id=%s... interface=%s reason=no_live_address", peer_id[:8], interface_id)
			return
		await sync_firewall(repo, interface_id, address, normalized)


async def list_peer_stats(repo: WireguardRepository) -> list[PeerStat]:
	return await repo.list_peer_stats()


async def get_firewall_rules(repo: WireguardRepository) -> str:
	return await repo.list_firewall_rules()


async def list_wireguard_configs(repo: WireguardRepository, interface_id: str = "") -> list[RunningConfig]:
	return await repo.list_configs(interface_id)


# ─────────────────────────────────────────────────────────────────────────────
# Routes
# ─────────────────────────────────────────────────────────────────────────────

async def apply_allowed_routes(conn: sqlite3.Connection, repo: WireguardRepository, interface_id: str) -> int:
	"""Re-push every peer of the interface. Stops at the first failure.

	Returns the number of peers whose stored config changed.
	"""
	changed = 0
	async with interface_lock(repo, interface_id):
		for record in peers_db.list_peers_by_interface(conn, interface_id):
			if await push_peer_destinations(conn, repo, record, effective_allowed_ips(conn, record)):
				changed += 1
	_log.info("ROUTES_APPLIED interface=%s configs_changed=%d", interface_id, changed)
	return changed


async def apply_peer_routes(conn: sqlite3.Connection, repo: WireguardRepository, record: PeerRecord) -> bool:
	async with interface_lock(repo, record.interface_id):
		return await push_peer_destinations(conn, repo, record, effective_allowed_ips(conn, record))


def list_interface_routes(conn: sqlite3.Connection, interface_id: str) -> list[InterfaceRoute]:
	require(interface_id=interface_id)
	require_interface_config(conn, interface_id)
	return routes_db.list_interface_routes(conn, interface_id)


async def create_interface_route(conn: sqlite3.Connection, repo: WireguardRepository, interface_id: str, cidr: str) -> str:
	require(interface_id=interface_id, cidr=cidr)
	cidr = parse_ipv4_cidr(cidr)
	require_interface_config(conn, interface_id)
	routes_db.create_interface_route(conn, interface_id, cidr)
	_log.info("INTERFACE_ROUTE_CREATED interface=%s cidr=%s", interface_id, cidr)
	await apply_allowed_routes(conn, repo, interface_id)
	return cidr


async def delete_interface_route(conn: sqlite3.Connection, repo: WireguardRepository, interface_id: str, cidr: str) -> None:
	require(interface_id=interface_id, cidr=cidr)
	cidr = parse_ipv4_cidr(cidr)
	require_interface_config(conn, interface_id)
	if not routes_db.delete_interface_route(conn, interface_id, cidr):
		raise RecordNotFoundError(f"interface route not found: {cidr}")
	_log.info("INTERFACE_ROUTE_DELETED interface=%s cidr=%s", interface_id, cidr)
	await apply_allowed_routes(conn, repo, interface_id)


def list_peer_routes(conn: sqlite3.Connection, peer_id: str) -> list[PeerRoute]:
	require(peer_id=peer_id)
	require_peer_record(conn, peer_id)
	return routes_db.list_peer_routes(conn, peer_id)


async def create_peer_route(conn: sqlite3.Connection, repo: WireguardRepository, peer_id: str, cidr: str) -> str:
	require(peer_id=peer_id, cidr=cidr)
	cidr = parse_ipv4_cidr(cidr)
	record = require_peer_record(conn, peer_id)
	routes_db.create_peer_route(conn, peer_id, cidr)
	_log.info("PEER_ROUTE_CREATED peer_id=%s... cidr=%s", peer_id[:8], cidr)
	await apply_peer_routes(conn, repo, record)
	return cidr


async def delete_peer_route(
	conn: sqlite3.Connection,
	repo: WireguardRepository,
	peer_id: str,
	cidr: str,
) -> None:
	require(peer_id=peer_id, cidr=cidr)
	cidr = parse_ipv4_cidr(cidr)
	record = require_peer_record(conn, peer_id)
	if not routes_db.delete_peer_route(conn, peer_id, cidr):
		raise RecordNotFoundError(f"peer route not found: {cidr}")
	_log.info("PEER_ROUTE_DELETED peer_id=%s... cidr=%s", peer_id[:8], cidr)
	await apply_peer_routes(conn, repo, record)
