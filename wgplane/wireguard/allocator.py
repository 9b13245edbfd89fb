#!/usr/bin/env python3
#
# wgplane/wireguard/allocator.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Peer address allocation inside an interface prefix."""

from __future__ import annotations

from ipaddress import IPv4Address, IPv4Interface, ip_interface
from typing import Iterable

from ..errors import AllocationError, ValidationError

__all__ = [
	"next_available_ipv4",
	"allocate_peer_address",
	"parse_interface_address",
]


def parse_interface_address(address: str) -> IPv4Interface:
	"""Parse an interface address such as ``10.0.0.1/24``.

	Raises:
		ValidationError: If the value is not an IPv4 address with prefix length.
	"""
	try:
		iface = ip_interface(address.strip())
	except ValueError as exc:
		raise ValidationError(f"invalid interface address: {address!r}") from exc
	if not isinstance(iface, IPv4Interface):
		raise ValidationError("interface address is not IPv4")
	return iface


def next_available_ipv4(iface: IPv4Interface, used: Iterable[IPv4Address]) -> IPv4Address:
	"""Return the lowest free address in ``iface.network``.

	The scan starts right after the network address and never returns the
	network address, the interface's own address, or any address in ``used``.
	"""
	network = iface.network
	if network.prefixlen >= 31:
		raise AllocationError("prefix too small to allocate address")

	taken = {int(addr) for addr in used}
	taken.add(int(iface.ip))
	taken.add(int(network.network_address))

	first = int(network.network_address) + 1
	last = int(network.broadcast_address)
	for candidate in range(first, last + 1):
		if candidate not in taken:
			return IPv4Address(candidate)

	raise AllocationError("no available address in prefix")


def allocate_peer_address(interface_address: str, used: Iterable[str]) -> str:
	"""Allocate the next peer address as a ``/32`` CIDR string.

	``used`` may contain bare addresses or CIDRs; only IPv4 host entries inside
	the interface network are considered.
	"""
	iface = parse_interface_address(interface_address)
	used_addrs: set[IPv4Address] = set()
	for item in used:
		item = item.strip()
		if not item:
			continue
		try:
			parsed = ip_interface(item)
		except ValueError:
			continue
		if isinstance(parsed, IPv4Interface) and parsed.ip in iface.network:
			used_addrs.add(parsed.ip)
	return f"{next_available_ipv4(iface, used_addrs)}/32"
