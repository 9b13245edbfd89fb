#!/usr/bin/env python3
#
# wgplane/wireguard/firewall.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Per-peer forwarding rules in a dedicated iptables chain.

The chain is jumped to from FORWARD. Each peer owns exactly one ACCEPT rule
per non-self destination, scoped to its interface and its own address as
source. Rules are identified by the ``-s`` field of ``iptables -S`` output.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ..errors import CommandError
from .allowed_ips import host_of
from .runner import CommandRunner

_log = logging.getLogger(__name__)

__all__ = [
	"FIREWALL_CHAIN",
	"FirewallSynchronizer",
	"peer_rule_lines",
]

FIREWALL_CHAIN = "WGPLANE_FWD"


def _matches_source(fields: list[str], source_ip: str) -> bool:
	for i, item in enumerate(fields[:-1]):
		if item == "-s" and fields[i + 1] in (source_ip, f"{source_ip}/32"):
			return True
	return False


def peer_rule_lines(rules: str, source_ip: str) -> list[str]:
	"""Return the ``-A`` lines of an ``iptables -S`` listing whose source is ``source_ip``."""
	matches: list[str] = []
	for line in rules.splitlines():
		line = line.strip()
		if not line.startswith("-A "):
			continue
		if _matches_source(line.split(), source_ip):
			matches.append(line)
	return matches


class FirewallSynchronizer:
	"""Keeps the dedicated chain consistent with peers' destination sets."""

	def __init__(self, runner: CommandRunner, chain: str = FIREWALL_CHAIN):
		self.runner = runner
		self.chain = chain

	async def list_rules(self) -> str:
		return await self.runner.run("iptables", "-S", self.chain)

	async def ensure_chain(self) -> None:
		"""Create the chain and the FORWARD jump, each only if missing."""
		try:
			await self.runner.run("iptables", "-L", self.chain, "-n")
		except CommandError:
			await self.runner.run("iptables", "-N", self.chain)
			_log.info("FIREWALL_CHAIN_CREATED chain=%s", self.chain)

		forward = await self.runner.run("iptables", "-S", "FORWARD")
		jump = f"-A FORWARD -j {self.chain}"
		if not any(line.strip() == jump for line in forward.splitlines()):
			await self.runner.run("iptables", "-I", "FORWARD", "1", "-j", self.chain)
			_log.info("FIREWALL_JUMP_INSERTED chain=%s", self.chain)

	async def remove_peer_rules(self, peer_allowed_ip: str) -> int:
		"""Delete every rule sourced from the peer. A missing chain counts as nothing to remove."""
		source_ip = host_of(peer_allowed_ip)
		try:
			rules = await self.runner.run("iptables", "-S", self.chain)
		except CommandError:
			return 0

		removed = 0
		for line in peer_rule_lines(rules, source_ip):
			args = ["-D", *line.split()[1:]]
			try:
				await self.runner.run("iptables", *args)
				removed += 1
			except CommandError as exc:
				# Rule may already be gone
				_log.debug("FIREWALL_DELETE_SKIPPED rule=%r error=%s", line, exc)
		if removed:
			_log.info("FIREWALL_RULES_REMOVED source=%s count=%d", source_ip, removed)
		return removed

	async def sync_peer_rules(self, interface_id: str, peer_allowed_ip: str, allowed_ips: Sequence[str]) -> int:
		"""Replace the peer's rules with one ACCEPT per destination other than itself."""
		await self.ensure_chain()
		await self.remove_peer_rules(peer_allowed_ip)

		source_ip = host_of(peer_allowed_ip)
		added = 0
		for dest in allowed_ips:
			if dest == peer_allowed_ip:
				continue
			await self.runner.run(
				"iptables", "-A", self.chain,
				"-i", interface_id,
				"-s", source_ip,
				"-d", dest,
				"-j", "ACCEPT",
			)
			added += 1
		_log.info(
			"FIREWALL_SYNC interface=%s source=%s rules=%d",
			interface_id,
			source_ip,
			added,
		)
		return added

	async def flush(self) -> None:
		"""Drop every rule in the chain (the chain and its FORWARD jump stay)."""
		await self.runner.run("iptables", "-F", self.chain)
		_log.info("FIREWALL_CHAIN_FLUSHED chain=%s", self.chain)
