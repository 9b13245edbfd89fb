#!/usr/bin/env python3
#
# tests/test_bootstrap.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Tests for startup reconciliation of live state from the store."""

import asyncio

import pytest

from wgplane.db import sqlite_peers, sqlite_routes
from wgplane.errors import CommandError
from wgplane.models.wireguard import PeerRecord
from wgplane.wireguard.bootstrap import bootstrap_wireguard
from wgplane.wireguard.firewall import FIREWALL_CHAIN
from wgplane.wireguard.repo_command import CommandRepository
from tests.helpers import seed_interface


def _peer(conn, peer_id, interface_id, allowed_ip):
	sqlite_peers.create_peer(conn, PeerRecord(
		email=f"{peer_id[:3]}@example.com",
		peer_id=peer_id,
		interface_id=interface_id,
		allowed_ip=allowed_ip,
		config="",
	))


@pytest.fixture
def stored_state(conn):
	seed_interface(conn, "wg0", address="10.0.0.1/24")
	seed_interface(conn, "wg1", address="10.1.0.1/24", listen_port=51821)
	sqlite_routes.create_interface_route(conn, "wg0", "10.8.0.0/16")
	_peer(conn, "aaa=", "wg0", "10.0.0.2/32")
	_peer(conn, "bbb=", "wg0", "10.0.0.3/32")
	_peer(conn, "ccc=", "wg1", "10.1.0.2/32")
	sqlite_routes.create_peer_route(conn, "ccc=", "192.168.5.0/24")
	return conn


def test_bootstrap_discards_and_replays(host, command_repo, stored_state):
	host.add_interface("wg0", "10.0.0.1/24")
	host.add_interface("stale", "10.99.0.1/24")
	host.add_interface("wg-system", "10.200.0.1/24")
	host.chains[FIREWALL_CHAIN] = [f"-A {FIREWALL_CHAIN} -i wg0 -s 10.0.0.9/32 -d 10.8.0.0/16 -j ACCEPT"]

	result = asyncio.run(bootstrap_wireguard(stored_state, command_repo, host, frozenset({"wg-system"})))

	assert sorted(result.discarded) == ["stale", "wg0"]
	assert (result.interfaces, result.peers) == (2, 3)
	assert sorted(host.interfaces) == ["wg-system", "wg0", "wg1"]
	assert host.interfaces["wg1"].listen_port == 51821

	assert host.interfaces["wg0"].peers == {
		"aaa=": ["10.0.0.2/32", "10.8.0.0/16"],
		"bbb=": ["10.0.0.3/32", "10.8.0.0/16"],
	}
	assert host.interfaces["wg1"].peers == {"ccc=": ["10.1.0.2/32", "192.168.5.0/24"]}

	# Stale rule flushed; one rule per non-self destination replayed.
	assert host.rules() == [
		f"-A {FIREWALL_CHAIN} -i wg0 -s 10.0.0.2/32 -d 10.8.0.0/16 -j ACCEPT",
		f"-A {FIREWALL_CHAIN} -i wg0 -s 10.0.0.3/32 -d 10.8.0.0/16 -j ACCEPT",
		f"-A {FIREWALL_CHAIN} -i wg1 -s 10.1.0.2/32 -d 192.168.5.0/24 -j ACCEPT",
	]
	assert host.rules("FORWARD") == [f"-A FORWARD -j {FIREWALL_CHAIN}"]


def test_interfaces_are_brought_down_before_deletion(host, command_repo, conn):
	host.add_interface("old0", "10.9.0.1/24")
	asyncio.run(bootstrap_wireguard(conn, command_repo, host))

	down = host.calls.index(("ip", "link", "set", "down", "dev", "old0"))
	delete = host.calls.index(("ip", "link", "delete", "dev", "old0"))
	assert down < delete


def test_empty_store_only_resets(host, command_repo, conn):
	result = asyncio.run(bootstrap_wireguard(conn, command_repo, host))
	assert (result.discarded, result.interfaces, result.peers) == ([], 0, 0)
	assert FIREWALL_CHAIN in host.chains


def test_failure_propagates(host, command_repo, stored_state):
	host.fail("ip", "link", "add", output="RTNETLINK answers: Operation not permitted")
	with pytest.raises(CommandError, match="Operation not permitted"):
		asyncio.run(bootstrap_wireguard(stored_state, command_repo, host))


def test_chain_is_ensured_through_the_repository(host, conn):
	class RecordingRepository(CommandRepository):
		ensured = 0

		async def ensure_firewall_chain(self):
			self.ensured += 1
			await super().ensure_firewall_chain()

	repo = RecordingRepository(host)
	asyncio.run(bootstrap_wireguard(conn, repo, host))
	assert repo.ensured == 1
	assert ("iptables", "-F", FIREWALL_CHAIN) in host.calls
