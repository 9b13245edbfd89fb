#!/usr/bin/env python3
#
# wgplane/wireguard/bootstrap.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Startup reconciliation: rebuild live state from the database.

Runs once before the first request, on the host that owns the command
backend. Every live WireGuard interface outside the exclusion list is
discarded, then each stored interface is re-created and each stored peer is
re-installed with its effective destination set and firewall rules.

Interface private keys are not persisted, so re-creation yields new public
keys and previously rendered peer configs carry a stale server key.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import AbstractSet

from ..db.sqlite_interfaces import list_interfaces
from ..db.sqlite_peers import list_peers_by_interface
from ..db.sqlite_routes import list_interface_routes, list_peer_routes
from .allowed_ips import build_allowed_ips
from .firewall import FirewallSynchronizer
from .repository import WireguardRepository
from .runner import CommandRunner

_log = logging.getLogger(__name__)

__all__ = ["BootstrapResult", "bootstrap_wireguard"]


@dataclass
class BootstrapResult:
	discarded: list[str] = field(default_factory=list)
	interfaces: int = 0
	peers: int = 0


async def bootstrap_wireguard(
	conn: sqlite3.Connection,
	repo: WireguardRepository,
	runner: CommandRunner,
	excluded: AbstractSet[str] = frozenset(),
) -> BootstrapResult:
	"""Reset live WireGuard state and replay the stored desired state.

	Any error propagates; callers treat it as fatal for startup.
	"""
	result = BootstrapResult()

	for name in (await runner.run("wg", "show", "interfaces")).split():
		if name in excluded:
			_log.info("BOOTSTRAP_SKIP interface=%s reason=excluded", name)
			continue
		await runner.run("ip", "link", "set", "down", "dev", name)
		await runner.run("ip", "link", "delete", "dev", name)
		result.discarded.append(name)

	await repo.ensure_firewall_chain()
	await FirewallSynchronizer(runner).flush()

	for config in list_interfaces(conn):
		live = await repo.create_interface(config)
		result.interfaces += 1
		interface_cidrs = [route.cidr for route in list_interface_routes(conn, config.id)]

		for peer in list_peers_by_interface(conn, config.id):
			peer_cidrs = [route.cidr for route in list_peer_routes(conn, peer.peer_id)]
			allowed_ips = build_allowed_ips(peer.allowed_ip, interface_cidrs, peer_cidrs)
			await repo.update_peer_allowed_ips(config.id, peer.peer_id, allowed_ips)
			await repo.sync_peer_firewall_rules(config.id, peer.allowed_ip, allowed_ips)
			result.peers += 1

		_log.info(
			"BOOTSTRAP_INTERFACE interface=%s public_key=%s... routes=%d",
			config.id,
			live.public_key[:8],
			len(interface_cidrs),
		)

	_log.info(
		"BOOTSTRAP_DONE discarded=%d interfaces=%d peers=%d",
		len(result.discarded),
		result.interfaces,
		result.peers,
	)
	return result
