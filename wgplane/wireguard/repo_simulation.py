#!/usr/bin/env python3
#
# wgplane/wireguard/repo_simulation.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Simulation backend for unprivileged and development environments.

Interfaces are read from the interface store; their public keys are derived
from the interface id with SHA-256, so repeated calls agree. Peer key pairs
are random. Nothing on the host is touched and firewall calls are no-ops.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Sequence

from ..db.sqlite_interfaces import get_interface, list_interfaces
from ..db.sqlite_peers import list_peers, list_peers_by_interface
from ..db.sqlite_runtime import close_connection, connect
from ..errors import InterfaceNotFoundError, ValidationError
from ..models.wireguard import InterfaceConfig, LiveInterface, PeerStat, RunningConfig, WireguardPeer
from .allocator import allocate_peer_address
from .allowed_ips import normalize_allowed_ips, tunnel_address
from .peer_config import render_peer_config

_log = logging.getLogger(__name__)

__all__ = ["SimulationRepository", "simulated_public_key"]


def simulated_public_key(interface_id: str) -> str:
	return base64.b64encode(hashlib.sha256(interface_id.encode("utf-8")).digest()).decode("ascii")


def _random_key() -> str:
	return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


def _to_live(config: InterfaceConfig) -> LiveInterface:
	return LiveInterface(
		id=config.id,
		name=config.name,
		address=config.address,
		listen_port=config.listen_port,
		public_key=simulated_public_key(config.id),
		mtu=config.mtu,
	)


class SimulationRepository:
	firewall_capable = True

	def __init__(self, db_path: Path):
		self.db_path = db_path
		# Peers installed by this process: peer_id -> (interface_id, allowed ips)
		self._live_peers: dict[str, tuple[str, list[str]]] = {}

	@contextmanager
	def _conn(self):
		conn = connect(self.db_path)
		try:
			yield conn
		finally:
			close_connection(conn)

	def _stored_interface(self, interface_id: str) -> InterfaceConfig:
		with self._conn() as conn:
			config = get_interface(conn, interface_id)
		if config is None:
			raise InterfaceNotFoundError(interface_id)
		return config

	async def list_interfaces(self) -> list[LiveInterface]:
		with self._conn() as conn:
			return [_to_live(config) for config in list_interfaces(conn)]

	async def get_interface(self, interface_id: str) -> LiveInterface:
		return _to_live(self._stored_interface(interface_id))

	async def create_interface(self, config: InterfaceConfig) -> LiveInterface:
		_log.info("SIM_INTERFACE_CREATED interface=%s", config.id)
		return _to_live(config)

	async def update_interface(self, config: InterfaceConfig) -> LiveInterface:
		return _to_live(config)

	async def delete_interface(self, interface_id: str) -> None:
		self._live_peers = {
			peer_id: entry for peer_id, entry in self._live_peers.items() if entry[0] != interface_id
		}

	async def create_peer(self, interface_id: str, endpoint: str, allowed_ips: Sequence[str]) -> WireguardPeer:
		config = self._stored_interface(interface_id)
		endpoint = endpoint or config.endpoint
		if not endpoint:
			raise ValidationError("endpoint is required")

		with self._conn() as conn:
			used = [record.allowed_ip for record in list_peers_by_interface(conn, interface_id)]
		used.extend(ips[0] for iface, ips in self._live_peers.values() if iface == interface_id and ips)
		allowed_ip = allocate_peer_address(config.address, used)

		private_key = _random_key()
		public_key = _random_key()
		peer_allowed_ips = normalize_allowed_ips(allowed_ip, allowed_ips)
		self._live_peers[public_key] = (interface_id, peer_allowed_ips)

		peer_config = render_peer_config(
			private_key=private_key,
			address=allowed_ip,
			server_public_key=simulated_public_key(interface_id),
			endpoint=endpoint,
			listen_port=config.listen_port,
			allowed_ips=peer_allowed_ips,
		)
		_log.info("SIM_PEER_CREATED peer_id=%s... interface=%s allowed_ip=%s", public_key[:8], interface_id, allowed_ip)
		return WireguardPeer(id=public_key, interface_id=interface_id, allowed_ip=allowed_ip, config=peer_config)

	async def update_peer_allowed_ips(self, interface_id: str, peer_id: str, allowed_ips: Sequence[str]) -> None:
		if not allowed_ips:
			raise ValidationError("allowed IPs are required")
		self._live_peers[peer_id] = (interface_id, list(allowed_ips))

	async def delete_peer(self, peer_id: str) -> None:
		self._live_peers.pop(peer_id, None)

	async def find_peer_address(self, peer_id: str, interface_id: str = "") -> Optional[str]:
		entry = self._live_peers.get(peer_id)
		if entry is None or (interface_id and entry[0] != interface_id):
			return None
		return tunnel_address(self._stored_interface(entry[0]).address, entry[1])

	async def list_peer_stats(self) -> list[PeerStat]:
		with self._conn() as conn:
			return [PeerStat(peer_id=record.peer_id, interface_id=record.interface_id) for record in list_peers(conn)]

	async def list_configs(self, interface_id: str = "") -> list[RunningConfig]:
		with self._conn() as conn:
			configs = [config for config in list_interfaces(conn) if not interface_id or config.id == interface_id]
			if interface_id and not configs:
				raise InterfaceNotFoundError(interface_id)
			out: list[RunningConfig] = []
			for config in configs:
				lines = ["[Interface]", f"ListenPort = {config.listen_port}"]
				for record in list_peers_by_interface(conn, config.id):
					ips = self._live_peers.get(record.peer_id, (config.id, [record.allowed_ip]))[1]
					lines.extend(["", "[Peer]", f"PublicKey = {record.peer_id}", f"AllowedIPs = {', '.join(ips)}"])
				out.append(RunningConfig(interface_id=config.id, config="\n".join(lines)))
		return out

	async def list_firewall_rules(self) -> str:
		return ""

	async def ensure_firewall_chain(self) -> None:
		return None

	async def sync_peer_firewall_rules(self, interface_id: str, peer_allowed_ip: str, allowed_ips: Sequence[str]) -> None:
		return None

	async def remove_peer_firewall_rules(self, peer_allowed_ip: str) -> None:
		return None
