#!/usr/bin/env python3
#
# wgplane/wireguard/peer_config.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Client-side peer configuration rendering and in-place AllowedIPs rewriting."""

from __future__ import annotations

from typing import Sequence

from ..errors import ValidationError

__all__ = [
	"render_peer_config",
	"rewrite_allowed_ips",
	"format_endpoint",
]

_ALLOWED_IPS_KEY = "AllowedIPs ="


def _sanitize(value: str, label: str) -> str:
	"""Prevent newline injection in the rendered config."""
	if "\n" in value or "\r" in value:
		raise ValidationError(f"{label} contains newline")
	return value


def format_endpoint(endpoint: str, listen_port: int) -> str:
	"""Append the listen port to a bare host endpoint.

	``vpn.example.com`` becomes ``vpn.example.com:51820``; values that already
	carry a port (``host:port`` or ``[v6]:port``) are returned unchanged.
	"""
	endpoint = endpoint.strip()
	if not endpoint or not listen_port:
		return endpoint
	if endpoint.startswith("["):
		return endpoint if "]:" in endpoint else f"{endpoint}:{listen_port}"
	if endpoint.count(":") == 1:
		return endpoint
	if ":" in endpoint:
		# Bare IPv6 literal
		return f"[{endpoint}]:{listen_port}"
	return f"{endpoint}:{listen_port}"


def render_peer_config(
	*,
	private_key: str,
	address: str,
	server_public_key: str,
	endpoint: str,
	listen_port: int,
	allowed_ips: Sequence[str],
) -> str:
	"""Render the two-section client configuration for a peer."""
	parts = [
		"[Interface]",
		f"PrivateKey = {_sanitize(private_key, 'private key')}",
		f"Address = {_sanitize(address, 'address')}",
		"",
		"[Peer]",
		f"PublicKey = {_sanitize(server_public_key, 'server public key')}",
		f"AllowedIPs = {_sanitize(', '.join(allowed_ips), 'allowed ips')}",
		f"Endpoint = {_sanitize(format_endpoint(endpoint, listen_port), 'endpoint')}",
	]
	return "\n".join(parts) + "\n"


def rewrite_allowed_ips(config: str, allowed_ips: Sequence[str]) -> str:
	"""Replace every ``AllowedIPs =`` line, keeping its indentation.

	All other lines are returned byte-for-byte. An empty config or an empty
	destination list leaves the config untouched.
	"""
	if not config or not allowed_ips:
		return config
	replacement = _ALLOWED_IPS_KEY + " " + ", ".join(allowed_ips)
	lines = config.split("\n")
	updated = False
	for i, line in enumerate(lines):
		if not line.strip().startswith(_ALLOWED_IPS_KEY):
			continue
		indent = line[:line.index(_ALLOWED_IPS_KEY)]
		lines[i] = indent + replacement
		updated = True
	return "\n".join(lines) if updated else config
