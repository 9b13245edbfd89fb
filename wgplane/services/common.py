#!/usr/bin/env python3
#
# wgplane/services/common.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Helpers shared by the admin and self-service orchestration layers."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Sequence

from ..db.sqlite_interfaces import get_interface
from ..db.sqlite_peers import get_peer_by_peer_id, update_peer_config
from ..db.sqlite_routes import list_interface_routes, list_peer_routes
from ..errors import InterfaceNotFoundError, PeerNotFoundError, ValidationError
from ..models.wireguard import InterfaceConfig, PeerRecord
from ..wireguard.allowed_ips import build_allowed_ips
from ..wireguard.peer_config import rewrite_allowed_ips
from ..wireguard.repository import WireguardRepository

_log = logging.getLogger(__name__)

__all__ = [
	"interface_lock",
	"require",
	"require_interface_config",
	"require_peer_record",
	"interface_route_cidrs",
	"effective_allowed_ips",
	"sync_firewall",
	"remove_firewall",
	"push_peer_destinations",
]

# Serializes allocate-and-install and route fan-out per (backend, interface).
# Process-local: deployments must run a single privileged worker.
_INTERFACE_LOCKS: dict[tuple[int, str], asyncio.Lock] = {}


def interface_lock(repo: WireguardRepository, interface_id: str) -> asyncio.Lock:
	key = (id(repo), interface_id)
	lock = _INTERFACE_LOCKS.get(key)
	if lock is None:
		lock = _INTERFACE_LOCKS[key] = asyncio.Lock()
	return lock


def require(**fields: object) -> None:
	"""Raise ValidationError naming the first empty field."""
	for name, value in fields.items():
		if not value:
			raise ValidationError(f"{name.replace('_', ' ')} is required")


def require_interface_config(conn: sqlite3.Connection, interface_id: str) -> InterfaceConfig:
	config = get_interface(conn, interface_id)
	if config is None:
		raise InterfaceNotFoundError(interface_id)
	return config


def require_peer_record(conn: sqlite3.Connection, peer_id: str) -> PeerRecord:
	record = get_peer_by_peer_id(conn, peer_id)
	if record is None:
		raise PeerNotFoundError(peer_id)
	return record


def interface_route_cidrs(conn: sqlite3.Connection, interface_id: str) -> list[str]:
	return [route.cidr for route in list_interface_routes(conn, interface_id)]


def effective_allowed_ips(conn: sqlite3.Connection, record: PeerRecord) -> list[str]:
	"""Self first, then the interface routes, then the peer's own routes."""
	return build_allowed_ips(
		record.allowed_ip,
		interface_route_cidrs(conn, record.interface_id),
		[route.cidr for route in list_peer_routes(conn, record.peer_id)],
	)


async def sync_firewall(repo: WireguardRepository, interface_id: str, peer_allowed_ip: str, allowed_ips: Sequence[str]) -> None:
	"""Sync the peer's firewall rules where this process owns the firewall.

	On a delegating backend the privileged side has already synced as part of
	the forwarded peer operation.
	"""
	if repo.firewall_capable:
		await repo.sync_peer_firewall_rules(interface_id, peer_allowed_ip, allowed_ips)


async def remove_firewall(repo: WireguardRepository, peer_allowed_ip: str) -> None:
	if repo.firewall_capable:
		await repo.remove_peer_firewall_rules(peer_allowed_ip)


async def push_peer_destinations(
	conn: sqlite3.Connection,
	repo: WireguardRepository,
	record: PeerRecord,
	allowed_ips: Sequence[str],
) -> bool:
	"""Push a destination set to one peer: live peer, firewall, stored config.

	Returns True when the stored config text changed.
	"""
	await repo.update_peer_allowed_ips(record.interface_id, record.peer_id, allowed_ips)
	await sync_firewall(repo, record.interface_id, record.allowed_ip, allowed_ips)

	updated = rewrite_allowed_ips(record.config, allowed_ips)
	if not updated or updated == record.config:
		return False
	update_peer_config(conn, record.peer_id, updated)
	record.config = updated
	return True
