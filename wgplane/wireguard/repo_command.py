#!/usr/bin/env python3
#
# wgplane/wireguard/repo_command.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Command backend: drives the host with wg, ip and iptables.

Every multi-step operation runs its commands strictly in order. There is no
rollback: a failure part-way leaves the interface partially configured and
the ``CommandError`` propagates to the caller.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ..errors import CommandError, ExternalOperationError, InterfaceNotFoundError, PeerNotFoundError, ValidationError
from ..models.wireguard import InterfaceConfig, LiveInterface, PeerStat, RunningConfig, WireguardPeer
from .allocator import allocate_peer_address, parse_interface_address
from .allowed_ips import normalize_allowed_ips, tunnel_address, validate_interface_id
from .firewall import FirewallSynchronizer
from .peer_config import render_peer_config
from .runner import CommandRunner

_log = logging.getLogger(__name__)

__all__ = [
	"CommandRepository",
	"parse_transfer",
	"parse_latest_handshakes",
	"parse_allowed_ips",
	"parse_peer_allowed_ips",
	"parse_inet",
	"parse_mtu",
]

_MISSING_DEVICE_MARKERS = ("does not exist", "No such device", "Cannot find device")


def _is_missing_device(exc: CommandError) -> bool:
	return any(marker in exc.output or marker in str(exc) for marker in _MISSING_DEVICE_MARKERS)


def _int_field(value: str, label: str) -> int:
	try:
		return int(value)
	except ValueError as exc:
		raise ExternalOperationError(f"parse {label}: {value!r}") from exc


# ─────────────────────────────────────────────────────────────────────────────
# Output parsers
# ─────────────────────────────────────────────────────────────────────────────

def parse_inet(output: str) -> Optional[str]:
	"""Return the first ``inet`` prefix from ``ip -4 addr show`` output."""
	for line in output.splitlines():
		fields = line.split()
		for i, item in enumerate(fields[:-1]):
			if item == "inet":
				return fields[i + 1]
	return None


def parse_mtu(output: str) -> Optional[int]:
	"""Return the ``mtu`` value from ``ip link show`` output."""
	fields = output.split()
	for i, item in enumerate(fields[:-1]):
		if item == "mtu":
			return _int_field(fields[i + 1], "mtu")
	return None


def parse_peer_allowed_ips(output: str) -> dict[str, list[str]]:
	"""Parse ``wg show <iface> allowed-ips`` into ``{public_key: [cidr, ...]}``."""
	peers: dict[str, list[str]] = {}
	for line in output.splitlines():
		fields = line.split()
		if not fields:
			continue
		cidrs = peers.setdefault(fields[0], [])
		for item in fields[1:]:
			for cidr in item.split(","):
				cidr = cidr.strip()
				if cidr and cidr != "(none)":
					cidrs.append(cidr)
	return peers


def parse_allowed_ips(output: str) -> list[str]:
	"""Flatten ``wg show <iface> allowed-ips`` output into a list of CIDRs."""
	return [cidr for cidrs in parse_peer_allowed_ips(output).values() for cidr in cidrs]


def parse_transfer(output: str) -> dict[str, tuple[int, int]]:
	"""Parse ``wg show <iface> transfer`` into ``{public_key: (rx, tx)}``."""
	transfers: dict[str, tuple[int, int]] = {}
	for line in output.splitlines():
		fields = line.split()
		if len(fields) < 3:
			continue
		transfers[fields[0]] = (_int_field(fields[1], "rx bytes"), _int_field(fields[2], "tx bytes"))
	return transfers


def parse_latest_handshakes(output: str) -> dict[str, int]:
	"""Parse ``wg show <iface> latest-handshakes`` into ``{public_key: unix_ts}``."""
	handshakes: dict[str, int] = {}
	for line in output.splitlines():
		fields = line.split()
		if len(fields) < 2:
			continue
		handshakes[fields[0]] = _int_field(fields[1], "handshake")
	return handshakes


# ─────────────────────────────────────────────────────────────────────────────
# Repository
# ─────────────────────────────────────────────────────────────────────────────

class CommandRepository:
	firewall_capable = True

	def __init__(self, runner: CommandRunner, firewall: Optional[FirewallSynchronizer] = None):
		self.runner = runner
		self.firewall = firewall or FirewallSynchronizer(runner)

	# ─── interfaces ──────────────────────────────────────────

	async def _interface_names(self) -> list[str]:
		return (await self.runner.run("wg", "show", "interfaces")).split()

	async def _interface_address(self, name: str) -> str:
		try:
			output = await self.runner.run("ip", "-4", "addr", "show", "dev", name)
		except CommandError as exc:
			if _is_missing_device(exc):
				raise InterfaceNotFoundError(name) from exc
			raise
		prefix = parse_inet(output)
		if prefix is None:
			raise InterfaceNotFoundError(name)
		return prefix

	async def _describe(self, name: str) -> LiveInterface:
		try:
			public_key = await self.runner.run("wg", "show", name, "public-key")
		except CommandError as exc:
			if _is_missing_device(exc):
				raise InterfaceNotFoundError(name) from exc
			raise
		listen_port = _int_field(await self.runner.run("wg", "show", name, "listen-port"), "listen port")
		address = await self._interface_address(name)
		mtu = parse_mtu(await self.runner.run("ip", "link", "show", "dev", name)) or 0
		return LiveInterface(
			id=name,
			name=name,
			address=address,
			listen_port=listen_port,
			public_key=public_key.strip(),
			mtu=mtu,
		)

	async def list_interfaces(self) -> list[LiveInterface]:
		return [await self._describe(name) for name in await self._interface_names()]

	async def get_interface(self, interface_id: str) -> LiveInterface:
		return await self._describe(validate_interface_id(interface_id))

	async def create_interface(self, config: InterfaceConfig) -> LiveInterface:
		iface_id = validate_interface_id(config.id)
		address = str(parse_interface_address(config.address))

		await self.runner.run("ip", "link", "add", "dev", iface_id, "type", "wireguard")
		private_key = await self.runner.run("wg", "genkey")
		await self.runner.run(
			"wg", "set", iface_id, "private-key", "/dev/fd/0", "listen-port", str(config.listen_port),
			stdin=private_key.strip() + "\n",
		)
		await self.runner.run("ip", "address", "add", address, "dev", iface_id)
		await self.runner.run("ip", "link", "set", "mtu", str(config.mtu), "dev", iface_id)
		await self.runner.run("ip", "link", "set", "up", "dev", iface_id)

		live = await self._describe(iface_id)
		_log.info(
			"INTERFACE_CREATED interface=%s address=%s listen_port=%d public_key=%s...",
			iface_id,
			live.address,
			live.listen_port,
			live.public_key[:8],
		)
		return live

	async def update_interface(self, config: InterfaceConfig) -> LiveInterface:
		iface_id = validate_interface_id(config.id)
		address = str(parse_interface_address(config.address))

		await self.runner.run("ip", "-4", "address", "flush", "dev", iface_id)
		await self.runner.run("ip", "address", "add", address, "dev", iface_id)
		await self.runner.run("wg", "set", iface_id, "listen-port", str(config.listen_port))
		await self.runner.run("ip", "link", "set", "mtu", str(config.mtu), "dev", iface_id)
		await self.runner.run("ip", "link", "set", "up", "dev", iface_id)

		_log.info("INTERFACE_UPDATED interface=%s address=%s", iface_id, address)
		return await self._describe(iface_id)

	async def delete_interface(self, interface_id: str) -> None:
		iface_id = validate_interface_id(interface_id)
		await self.runner.run("ip", "link", "delete", "dev", iface_id)
		_log.info("INTERFACE_DELETED interface=%s", iface_id)

	# ─── peers ───────────────────────────────────────────────

	async def create_peer(self, interface_id: str, endpoint: str, allowed_ips: Sequence[str]) -> WireguardPeer:
		iface = await self.get_interface(interface_id)
		if not endpoint:
			raise ValidationError("endpoint is required")

		used = parse_allowed_ips(await self.runner.run("wg", "show", iface.id, "allowed-ips"))
		allowed_ip = allocate_peer_address(iface.address, used)

		private_key = (await self.runner.run("wg", "genkey")).strip()
		public_key = (await self.runner.run("wg", "pubkey", stdin=private_key + "\n")).strip()

		peer_allowed_ips = normalize_allowed_ips(allowed_ip, allowed_ips)
		await self.runner.run("wg", "set", iface.id, "peer", public_key, "allowed-ips", ",".join(peer_allowed_ips))

		config = render_peer_config(
			private_key=private_key,
			address=allowed_ip,
			server_public_key=iface.public_key,
			endpoint=endpoint,
			listen_port=iface.listen_port,
			allowed_ips=peer_allowed_ips,
		)
		_log.info(
			"PEER_CREATED peer_id=%s... interface=%s allowed_ip=%s destinations=%d",
			public_key[:8],
			iface.id,
			allowed_ip,
			len(peer_allowed_ips),
		)
		return WireguardPeer(id=public_key, interface_id=iface.id, allowed_ip=allowed_ip, config=config)

	async def update_peer_allowed_ips(self, interface_id: str, peer_id: str, allowed_ips: Sequence[str]) -> None:
		if not allowed_ips:
			raise ValidationError("allowed IPs are required")
		iface_id = validate_interface_id(interface_id)
		await self.runner.run("wg", "set", iface_id, "peer", peer_id, "allowed-ips", ",".join(allowed_ips))
		_log.info("PEER_ALLOWED_IPS_UPDATED peer_id=%s... interface=%s destinations=%d", peer_id[:8], iface_id, len(allowed_ips))

	async def delete_peer(self, peer_id: str) -> None:
		for name in await self._interface_names():
			peers = (await self.runner.run("wg", "show", name, "peers")).split()
			if peer_id in peers:
				await self.runner.run("wg", "set", name, "peer", peer_id, "remove")
				_log.info("PEER_DELETED peer_id=%s... interface=%s", peer_id[:8], name)
				return
		raise PeerNotFoundError(peer_id)

	async def find_peer_address(self, peer_id: str, interface_id: str = "") -> Optional[str]:
		"""Return the live peer's own /32, or None when no managed interface carries it."""
		names = [validate_interface_id(interface_id)] if interface_id else await self._interface_names()
		for name in names:
			try:
				output = await self.runner.run("wg", "show", name, "allowed-ips")
			except CommandError as exc:
				if _is_missing_device(exc):
					raise InterfaceNotFoundError(name) from exc
				raise
			peers = parse_peer_allowed_ips(output)
			if peer_id in peers:
				return tunnel_address(await self._interface_address(name), peers[peer_id])
		return None

	async def list_peer_stats(self) -> list[PeerStat]:
		stats: dict[str, PeerStat] = {}
		for iface in await self.list_interfaces():
			transfers = parse_transfer(await self.runner.run("wg", "show", iface.name, "transfer"))
			handshakes = parse_latest_handshakes(await self.runner.run("wg", "show", iface.name, "latest-handshakes"))
			for peer_id in {**transfers, **handshakes}:
				rx, tx = transfers.get(peer_id, (0, 0))
				stats[peer_id] = PeerStat(
					peer_id=peer_id,
					interface_id=iface.id,
					rx_bytes=rx,
					tx_bytes=tx,
					last_handshake_at=handshakes.get(peer_id, 0),
				)
		return list(stats.values())

	async def list_configs(self, interface_id: str = "") -> list[RunningConfig]:
		configs: list[RunningConfig] = []
		for name in await self._interface_names():
			if interface_id and name != interface_id:
				continue
			configs.append(RunningConfig(interface_id=name, config=await self.runner.run("wg", "showconf", name)))
		if interface_id and not configs:
			raise InterfaceNotFoundError(interface_id)
		return configs

	# ─── firewall ────────────────────────────────────────────

	async def list_firewall_rules(self) -> str:
		return await self.firewall.list_rules()

	async def ensure_firewall_chain(self) -> None:
		await self.firewall.ensure_chain()

	async def sync_peer_firewall_rules(self, interface_id: str, peer_allowed_ip: str, allowed_ips: Sequence[str]) -> None:
		await self.firewall.sync_peer_rules(validate_interface_id(interface_id), peer_allowed_ip, allowed_ips)

	async def remove_peer_firewall_rules(self, peer_allowed_ip: str) -> None:
		await self.firewall.remove_peer_rules(peer_allowed_ip)
