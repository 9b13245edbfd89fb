#!/usr/bin/env python3
#
# tests/test_repo_simulation.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Tests for the in-process simulation backend used in development."""

import asyncio

import pytest

from wgplane.db import sqlite_peers
from wgplane.errors import InterfaceNotFoundError, ValidationError
from wgplane.models.wireguard import PeerRecord
from wgplane.wireguard.repo_simulation import simulated_public_key
from tests.helpers import seed_interface


def test_interfaces_mirror_the_store(conn, sim_repo):
	seed_interface(conn, "wg0")
	seed_interface(conn, "wg1", address="10.1.0.1/24")

	items = asyncio.run(sim_repo.list_interfaces())
	assert [i.id for i in items] == ["wg0", "wg1"]
	assert items[0].public_key == simulated_public_key("wg0")

	with pytest.raises(InterfaceNotFoundError):
		asyncio.run(sim_repo.get_interface("wg9"))


def test_create_peer_allocates_against_stored_and_live_peers(conn, sim_repo):
	seed_interface(conn, "wg0")
	sqlite_peers.create_peer(conn, PeerRecord(
		email="a@example.com",
		peer_id="stored=",
		interface_id="wg0",
		allowed_ip="10.0.0.2/32",
		config="",
	))

	async def scenario():
		first = await sim_repo.create_peer("wg0", "", ["10.8.0.0/16"])
		second = await sim_repo.create_peer("wg0", "vpn.other.net:443", [])
		return first, second

	first, second = asyncio.run(scenario())
	assert first.allowed_ip == "10.0.0.3/32"
	assert second.allowed_ip == "10.0.0.4/32"
	assert f"PublicKey = {simulated_public_key('wg0')}\n" in first.config
	# Falls back to the stored endpoint.
	assert "Endpoint = vpn.example.com:51820\n" in first.config
	assert "Endpoint = vpn.other.net:443\n" in second.config
	assert "AllowedIPs = 10.0.0.3/32, 10.8.0.0/16\n" in first.config


def test_create_peer_without_any_endpoint(conn, sim_repo):
	seed_interface(conn, "wg0", endpoint="")
	with pytest.raises(ValidationError, match="endpoint"):
		asyncio.run(sim_repo.create_peer("wg0", "", []))


def test_running_config_reflects_updates(conn, sim_repo):
	seed_interface(conn, "wg0")

	async def scenario():
		peer = await sim_repo.create_peer("wg0", "", [])
		sqlite_peers.create_peer(conn, PeerRecord(
			email="",
			peer_id=peer.id,
			interface_id="wg0",
			allowed_ip=peer.allowed_ip,
			config=peer.config,
		))
		await sim_repo.update_peer_allowed_ips("wg0", peer.id, [peer.allowed_ip, "10.8.0.0/16"])
		return peer, await sim_repo.list_configs("wg0")

	peer, configs = asyncio.run(scenario())
	assert f"PublicKey = {peer.id}" in configs[0].config
	assert "AllowedIPs = 10.0.0.2/32, 10.8.0.0/16" in configs[0].config


def test_firewall_is_a_no_op(sim_repo):
	async def scenario():
		await sim_repo.ensure_firewall_chain()
		await sim_repo.sync_peer_firewall_rules("wg0", "10.0.0.2/32", ["10.8.0.0/16"])
		await sim_repo.remove_peer_firewall_rules("10.0.0.2/32")
		return await sim_repo.list_firewall_rules()

	assert asyncio.run(scenario()) == ""


def test_find_peer_address_tracks_installed_peers(conn, sim_repo):
	seed_interface(conn, "wg0")

	async def scenario():
		peer = await sim_repo.create_peer("wg0", "", [])
		await sim_repo.update_peer_allowed_ips("wg0", peer.id, ["10.8.0.0/16", peer.allowed_ip])
		found = await sim_repo.find_peer_address(peer.id)
		elsewhere = await sim_repo.find_peer_address(peer.id, "wg1")
		await sim_repo.delete_peer(peer.id)
		return peer, found, elsewhere, await sim_repo.find_peer_address(peer.id)

	peer, found, elsewhere, gone = asyncio.run(scenario())
	assert found == peer.allowed_ip == "10.0.0.2/32"
	assert elsewhere is None
	assert gone is None
