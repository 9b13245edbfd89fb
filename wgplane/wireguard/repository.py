#!/usr/bin/env python3
#
# wgplane/wireguard/repository.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Live-state repository contract and backend selection.

Three backends implement the same contract:

- ``CommandRepository``: mutates the host with ``wg``/``ip``/``iptables``.
- ``DelegatingRepository``: forwards every call to a privileged instance.
- ``SimulationRepository``: fabricates state for unprivileged environments.

``firewall_capable`` tells callers whether the backend accepts firewall
mutations. The delegating backend raises ``UnsupportedError`` for them; its
privileged peer keeps the firewall in sync as part of each peer operation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, Sequence

from ..models.wireguard import InterfaceConfig, LiveInterface, PeerStat, RunningConfig, WireguardPeer
from ..utils.config import Config
from .runner import CommandRunner

_log = logging.getLogger(__name__)

__all__ = [
	"WireguardRepository",
	"build_repository",
]


class WireguardRepository(Protocol):
	firewall_capable: bool

	async def list_interfaces(self) -> list[LiveInterface]: ...

	async def get_interface(self, interface_id: str) -> LiveInterface: ...

	async def create_interface(self, config: InterfaceConfig) -> LiveInterface: ...

	async def update_interface(self, config: InterfaceConfig) -> LiveInterface: ...

	async def delete_interface(self, interface_id: str) -> None: ...

	async def create_peer(self, interface_id: str, endpoint: str, allowed_ips: Sequence[str]) -> WireguardPeer: ...

	async def update_peer_allowed_ips(self, interface_id: str, peer_id: str, allowed_ips: Sequence[str]) -> None: ...

	async def delete_peer(self, peer_id: str) -> None: ...

	async def find_peer_address(self, peer_id: str, interface_id: str = "") -> Optional[str]: ...

	async def list_peer_stats(self) -> list[PeerStat]: ...

	async def list_firewall_rules(self) -> str: ...

	async def list_configs(self, interface_id: str = "") -> list[RunningConfig]: ...

	async def ensure_firewall_chain(self) -> None: ...

	async def sync_peer_firewall_rules(self, interface_id: str, peer_allowed_ip: str, allowed_ips: Sequence[str]) -> None: ...

	async def remove_peer_firewall_rules(self, peer_allowed_ip: str) -> None: ...


def build_repository(
	cfg: Config,
	*,
	runner: Optional[CommandRunner] = None,
	db_path: Optional[Path] = None,
) -> WireguardRepository:
	"""Instantiate the backend selected by ``cfg.backend``."""
	if cfg.backend == "command":
		from .repo_command import CommandRepository
		from .runner import SubprocessRunner
		repo: WireguardRepository = CommandRepository(runner or SubprocessRunner(timeout=cfg.command_timeout))
	elif cfg.backend == "delegating":
		from .repo_delegating import DelegatingRepository
		repo = DelegatingRepository(cfg.admin_rpc_url, token=cfg.rpc_token, timeout=cfg.rpc_timeout)
	else:
		from .repo_simulation import SimulationRepository
		repo = SimulationRepository(db_path or cfg.db_path)
	_log.info("REPOSITORY_BACKEND backend=%s role=%s", cfg.backend, cfg.role)
	return repo
