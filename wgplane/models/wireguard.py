#!/usr/bin/env python3
#
# wgplane/models/wireguard.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Domain records exchanged between stores, repository backends and services."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

__all__ = [
	"InterfaceConfig",
	"LiveInterface",
	"AdminInterface",
	"WireguardPeer",
	"PeerRecord",
	"AllowedEmail",
	"InterfaceRoute",
	"PeerRoute",
	"PeerStat",
	"PeerStatus",
	"RunningConfig",
	"to_dict",
]


@dataclass
class InterfaceConfig:
	"""Desired state of a managed interface."""
	id: str
	name: str
	address: str
	listen_port: int
	mtu: int
	endpoint: str


@dataclass
class LiveInterface:
	"""Observed state of a running interface."""
	id: str
	name: str
	address: str
	listen_port: int
	public_key: str
	mtu: int


@dataclass
class AdminInterface:
	"""Live interface overlaid with its stored display name and endpoint."""
	id: str
	name: str
	address: str
	listen_port: int
	public_key: str
	mtu: int
	endpoint: str


@dataclass
class WireguardPeer:
	"""A peer freshly installed on a live interface."""
	id: str
	interface_id: str
	allowed_ip: str
	config: str


@dataclass
class PeerRecord:
	email: str
	peer_id: str
	interface_id: str
	allowed_ip: str
	config: str
	created_at: datetime | None = None


@dataclass
class AllowedEmail:
	interface_id: str
	email: str
	created_at: datetime | None = None


@dataclass
class InterfaceRoute:
	interface_id: str
	cidr: str
	created_at: datetime | None = None


@dataclass
class PeerRoute:
	peer_id: str
	cidr: str
	created_at: datetime | None = None


@dataclass
class PeerStat:
	"""Live counters for one peer; last_handshake_at is a unix timestamp (0 = never)."""
	peer_id: str
	interface_id: str
	rx_bytes: int = 0
	tx_bytes: int = 0
	last_handshake_at: int = 0


@dataclass
class PeerStatus:
	peer_id: str
	interface_id: str
	interface_name: str
	rx_bytes: int = 0
	tx_bytes: int = 0
	last_handshake_at: int = 0


@dataclass
class RunningConfig:
	interface_id: str
	config: str = field(repr=False, default="")


def to_dict(record: Any) -> dict[str, Any]:
	"""Serialize a domain record for JSON responses."""
	return asdict(record)
