#!/usr/bin/env python3
#
# tests/helpers.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Test helpers: a scripted host for wg, ip and iptables plus record factories."""

from __future__ import annotations

import asyncio
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from wgplane.db import sqlite_grants, sqlite_interfaces
from wgplane.errors import CommandError
from wgplane.models.wireguard import InterfaceConfig
from wgplane.utils.config import Config
from wgplane.wireguard.firewall import FIREWALL_CHAIN

__all__ = ["FakeHost", "FakeInterface", "make_config", "interface_config", "seed_interface"]


@dataclass
class FakeInterface:
	name: str
	private_key: str = ""
	listen_port: int = 0
	address: str = ""
	mtu: int = 1420
	up: bool = False
	# public key -> allowed ips
	peers: dict[str, list[str]] = field(default_factory=dict)
	transfer: dict[str, tuple[int, int]] = field(default_factory=dict)
	handshakes: dict[str, int] = field(default_factory=dict)


def public_key_for(private_key: str) -> str:
	return private_key.replace("privkey", "pubkey", 1)


def _normalize_rule(tokens: list[str]) -> str:
	"""Render rule tokens the way ``iptables -S`` prints them (hosts get /32)."""
	out: list[str] = []
	for i, item in enumerate(tokens):
		if i > 0 and tokens[i - 1] in ("-s", "-d") and "/" not in item:
			item = f"{item}/32"
		out.append(item)
	return " ".join(out)


class FakeHost:
	"""Scripted stand-in for the wg, ip and iptables binaries.

	Every call is recorded in ``calls``. ``fail(prefix, output)`` makes any
	command starting with ``prefix`` exit non-zero with ``output``.
	"""

	def __init__(self) -> None:
		self.calls: list[tuple[str, ...]] = []
		self.interfaces: dict[str, FakeInterface] = {}
		self.chains: dict[str, list[str]] = {"FORWARD": []}
		self.failures: list[tuple[tuple[str, ...], str]] = []
		self.stdin: list[Optional[str]] = []
		self._key_seq = 0
		# Yield to the event loop before each command so concurrent tasks interleave.
		self.yield_control = False

	# ─── scripting ───────────────────────────────────────────

	def fail(self, *prefix: str, output: str = "simulated failure") -> None:
		self.failures.append((tuple(prefix), output))

	def add_interface(self, name: str, address: str = "", listen_port: int = 51820) -> FakeInterface:
		iface = FakeInterface(name=name, private_key=self._new_key(), listen_port=listen_port, address=address, up=True)
		self.interfaces[name] = iface
		return iface

	def rules(self, chain: str = FIREWALL_CHAIN) -> list[str]:
		return list(self.chains.get(chain, []))

	def commands(self, *prefix: str) -> list[tuple[str, ...]]:
		return [call for call in self.calls if call[:len(prefix)] == prefix]

	def _new_key(self) -> str:
		self._key_seq += 1
		return f"privkey{self._key_seq:04d}="

	def _error(self, argv: tuple[str, ...], output: str) -> CommandError:
		return CommandError(argv, 1, output)

	# ─── CommandRunner ───────────────────────────────────────

	async def run(self, *argv: str, stdin: Optional[str] = None) -> str:
		if self.yield_control:
			await asyncio.sleep(0)
		self.calls.append(argv)
		self.stdin.append(stdin)
		for prefix, output in self.failures:
			if argv[:len(prefix)] == prefix:
				raise self._error(argv, output)
		handlers = {"wg": self._wg, "ip": self._ip, "iptables": self._iptables}
		handler = handlers.get(argv[0])
		if handler is None:
			raise CommandError(argv, None, "", f"{argv[0]}: not found")
		return handler(argv, list(argv[1:]), stdin).strip()

	# ─── wg ──────────────────────────────────────────────────

	def _iface(self, argv: tuple[str, ...], name: str) -> FakeInterface:
		iface = self.interfaces.get(name)
		if iface is None:
			raise self._error(argv, "Unable to access interface: No such device")
		return iface

	def _wg(self, argv: tuple[str, ...], args: list[str], stdin: Optional[str]) -> str:
		if args == ["show", "interfaces"]:
			return " ".join(self.interfaces)
		if args == ["genkey"]:
			return self._new_key()
		if args == ["pubkey"]:
			return public_key_for((stdin or "").strip())
		if args[0] == "show" and len(args) == 3:
			iface = self._iface(argv, args[1])
			return self._wg_show(iface, args[2])
		if args[0] == "showconf":
			iface = self._iface(argv, args[1])
			lines = ["[Interface]", f"ListenPort = {iface.listen_port}"]
			for key, ips in iface.peers.items():
				lines.extend(["", "[Peer]", f"PublicKey = {key}", f"AllowedIPs = {', '.join(ips)}"])
			return "\n".join(lines)
		if args[0] == "set":
			iface = self._iface(argv, args[1])
			rest = args[2:]
			if rest[0] == "peer":
				key = rest[1]
				if rest[2] == "remove":
					iface.peers.pop(key, None)
				elif rest[2] == "allowed-ips":
					iface.peers[key] = rest[3].split(",") if rest[3] else []
				return ""
			for opt, value in zip(rest[::2], rest[1::2]):
				if opt == "private-key":
					iface.private_key = (stdin or "").strip()
				elif opt == "listen-port":
					iface.listen_port = int(value)
			return ""
		raise self._error(argv, f"unsupported wg invocation: {args}")

	def _wg_show(self, iface: FakeInterface, what: str) -> str:
		if what == "public-key":
			return public_key_for(iface.private_key) if iface.private_key else "(none)"
		if what == "listen-port":
			return str(iface.listen_port)
		if what == "peers":
			return "\n".join(iface.peers)
		if what == "allowed-ips":
			return "\n".join(f"{key}\t{' '.join(ips) or '(none)'}" for key, ips in iface.peers.items())
		if what == "transfer":
			return "\n".join(f"{key}\t{rx}\t{tx}" for key, (rx, tx) in iface.transfer.items())
		if what == "latest-handshakes":
			return "\n".join(f"{key}\t{ts}" for key, ts in iface.handshakes.items())
		raise ValueError(what)

	# ─── ip ──────────────────────────────────────────────────

	def _ip(self, argv: tuple[str, ...], args: list[str], stdin: Optional[str]) -> str:
		name = args[-1]
		if args[:2] == ["link", "add"]:
			name = args[3]
			if name in self.interfaces:
				raise self._error(argv, "RTNETLINK answers: File exists")
			self.interfaces[name] = FakeInterface(name=name)
			return ""
		if args[:2] == ["link", "delete"]:
			if self.interfaces.pop(name, None) is None:
				raise self._error(argv, f'Cannot find device "{name}"')
			return ""
		if args[:2] == ["link", "show"]:
			if name not in self.interfaces:
				raise self._error(argv, f'Device "{name}" does not exist.')
			iface = self.interfaces[name]
			state = "UP,LOWER_UP" if iface.up else "DOWN"
			return f"7: {name}: <POINTOPOINT,NOARP,{state}> mtu {iface.mtu} qdisc noqueue state UNKNOWN mode DEFAULT group default qlen 1000\n    link/none"
		if args[:2] == ["link", "set"]:
			if name not in self.interfaces:
				raise self._error(argv, f'Cannot find device "{name}"')
			iface = self.interfaces[name]
			if args[2] == "mtu":
				iface.mtu = int(args[3])
			elif args[2] in ("up", "down"):
				iface.up = args[2] == "up"
			return ""
		if args[:2] == ["address", "add"]:
			if name not in self.interfaces:
				raise self._error(argv, f'Cannot find device "{name}"')
			self.interfaces[name].address = args[2]
			return ""
		if args[:3] == ["-4", "address", "flush"]:
			if name not in self.interfaces:
				raise self._error(argv, f'Device "{name}" does not exist.')
			self.interfaces[name].address = ""
			return ""
		if args[:3] == ["-4", "addr", "show"]:
			if name not in self.interfaces:
				raise self._error(argv, f'Device "{name}" does not exist.')
			iface = self.interfaces[name]
			if not iface.address:
				return ""
			return (
				f"7: {name}: <POINTOPOINT,NOARP,UP,LOWER_UP> mtu {iface.mtu} qdisc noqueue state UNKNOWN group default qlen 1000\n"
				f"    inet {iface.address} scope global {name}\n"
				"       valid_lft forever preferred_lft forever"
			)
		raise self._error(argv, f"unsupported ip invocation: {args}")

	# ─── iptables ────────────────────────────────────────────

	def _iptables(self, argv: tuple[str, ...], args: list[str], stdin: Optional[str]) -> str:
		op, chain = args[0], args[1]
		missing = "iptables: No chain/target/match by that name."
		if op == "-N":
			if chain in self.chains:
				raise self._error(argv, "iptables: Chain already exists.")
			self.chains[chain] = []
			return ""
		if chain not in self.chains:
			raise self._error(argv, missing)
		rules = self.chains[chain]
		if op == "-L":
			return f"Chain {chain} (1 references)\ntarget     prot opt source               destination"
		if op == "-S":
			header = "-P FORWARD ACCEPT" if chain == "FORWARD" else f"-N {chain}"
			return "\n".join([header, *rules])
		if op == "-A":
			rules.append(_normalize_rule(["-A", chain, *args[2:]]))
			return ""
		if op == "-I":
			rules.insert(int(args[2]) - 1, _normalize_rule(["-A", chain, *args[3:]]))
			return ""
		if op == "-D":
			line = _normalize_rule(["-A", chain, *args[2:]])
			if line not in rules:
				raise self._error(argv, "iptables: Bad rule (does a matching rule exist in that chain?).")
			rules.remove(line)
			return ""
		if op == "-F":
			rules.clear()
			return ""
		raise self._error(argv, f"unsupported iptables invocation: {args}")


# ─────────────────────────────────────────────────────────────────────────────
# Factories
# ─────────────────────────────────────────────────────────────────────────────

def make_config(tmp_path: Path, **overrides) -> Config:
	values = dict(
		base_dir=tmp_path,
		data_dir=tmp_path,
		db_path=tmp_path / "wgplane.db",
		role="admin",
		backend="simulation",
		log_level="WARNING",
	)
	values.update(overrides)
	return Config(**values)


def interface_config(interface_id: str = "wg0", **overrides) -> InterfaceConfig:
	values = dict(
		id=interface_id,
		name=f"{interface_id} network",
		address="10.0.0.1/24",
		listen_port=51820,
		mtu=1420,
		endpoint="vpn.example.com",
	)
	values.update(overrides)
	return InterfaceConfig(**values)


def seed_interface(conn: sqlite3.Connection, interface_id: str = "wg0", *, emails: tuple[str, ...] = (), **overrides) -> InterfaceConfig:
	"""Store an interface config and grant ``emails`` access to it."""
	config = interface_config(interface_id, **overrides)
	sqlite_interfaces.create_interface(conn, config)
	for email in emails:
		sqlite_grants.create_grant(conn, interface_id, email)
	return config
