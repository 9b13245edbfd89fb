#!/usr/bin/env python3
#
# wgplane/wireguard/allowed_ips.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Allowed-destination projection and CIDR validation helpers."""

from __future__ import annotations

import re
from ipaddress import IPv4Network, ip_interface, ip_network
from typing import Iterable, Optional

from ..errors import ValidationError

__all__ = [
	"validate_interface_id",
	"parse_ipv4_cidr",
	"normalize_allowed_ips",
	"build_allowed_ips",
	"normalize_create_allowed_ips",
	"host_of",
	"tunnel_address",
]

# Same shape as Linux interface names, restricted to a safe character set.
_IFACE_NAME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]{0,14}$")


def validate_interface_id(interface_id: str) -> str:
	"""Validate an interface id before it reaches a host command.

	Raises:
		ValidationError: If the id is not a valid interface name.
	"""
	if not _IFACE_NAME_RE.fullmatch(interface_id or ""):
		raise ValidationError(
			"invalid interface id: must start with a letter, max 15 chars, alphanumeric with - or _"
		)
	return interface_id


def parse_ipv4_cidr(cidr: str) -> str:
	"""Validate an IPv4 CIDR and return it in canonical network form.

	``10.8.1.7/16`` becomes ``10.8.0.0/16``.
	"""
	value = (cidr or "").strip()
	if "/" not in value:
		raise ValidationError(f"invalid CIDR (missing prefix length): {cidr!r}")
	try:
		network = ip_network(value, strict=False)
	except ValueError as exc:
		raise ValidationError(f"invalid CIDR: {cidr!r}") from exc
	if not isinstance(network, IPv4Network):
		raise ValidationError("only IPv4 CIDR is supported")
	return str(network)


def _dedupe(items: Iterable[str]) -> list[str]:
	seen: set[str] = set()
	out: list[str] = []
	for item in items:
		if item in seen:
			continue
		seen.add(item)
		out.append(item)
	return out


def normalize_allowed_ips(peer_allowed_ip: str, allowed_ips: Iterable[str]) -> list[str]:
	"""Return the peer's own address followed by ``allowed_ips``, trimmed and deduplicated."""
	items = [peer_allowed_ip] if peer_allowed_ip else []
	items.extend(item.strip() for item in allowed_ips if item and item.strip())
	return _dedupe(items)


def build_allowed_ips(
	peer_allowed_ip: str,
	interface_cidrs: Iterable[str],
	peer_cidrs: Iterable[str],
) -> list[str]:
	"""Effective destination set: self, then sorted interface routes, then sorted peer routes."""
	items = [peer_allowed_ip] if peer_allowed_ip else []
	items.extend(sorted(interface_cidrs))
	items.extend(sorted(peer_cidrs))
	return _dedupe(items)


def normalize_create_allowed_ips(allowed_ips: Iterable[str], interface_cidrs: Iterable[str]) -> list[str]:
	"""Validate explicit destinations and merge interface routes, sorted and deduplicated."""
	items = [parse_ipv4_cidr(cidr) for cidr in allowed_ips if cidr and cidr.strip()]
	items.extend(interface_cidrs)
	return _dedupe(sorted(items))


def host_of(cidr: str) -> str:
	"""Strip a ``/32`` suffix: ``10.0.0.2/32`` -> ``10.0.0.2``."""
	return cidr[:-3] if cidr.endswith("/32") else cidr


def tunnel_address(interface_address: str, cidrs: Iterable[str]) -> Optional[str]:
	"""Return the peer's own address: the first /32 of ``cidrs`` inside the interface subnet."""
	iface = ip_interface(interface_address)
	for cidr in cidrs:
		try:
			network = ip_network(cidr.strip(), strict=False)
		except ValueError:
			continue
		host = network.network_address
		if network.prefixlen == 32 and host in iface.network and host != iface.ip:
			return str(network)
	return None
