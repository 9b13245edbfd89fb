#!/usr/bin/env python3
#
# tests/test_firewall.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Unit tests for the per-peer forwarding chain."""

import asyncio

from wgplane.wireguard.firewall import FIREWALL_CHAIN, FirewallSynchronizer, peer_rule_lines

ROUTES = ["10.0.0.2/32", "10.8.0.0/16", "192.168.0.0/24"]


def _rule(source, dest, interface="wg0"):
	return f"-A {FIREWALL_CHAIN} -i {interface} -s {source}/32 -d {dest} -j ACCEPT"


def test_ensure_chain_creates_chain_and_jump_once(host):
	firewall = FirewallSynchronizer(host)

	asyncio.run(firewall.ensure_chain())
	asyncio.run(firewall.ensure_chain())

	assert FIREWALL_CHAIN in host.chains
	assert host.rules("FORWARD") == [f"-A FORWARD -j {FIREWALL_CHAIN}"]
	assert len(host.commands("iptables", "-N")) == 1
	assert len(host.commands("iptables", "-I")) == 1


def test_sync_adds_one_rule_per_non_self_destination(host):
	added = asyncio.run(FirewallSynchronizer(host).sync_peer_rules("wg0", "10.0.0.2/32", ROUTES))

	assert added == 2
	assert host.rules() == [
		_rule("10.0.0.2", "10.8.0.0/16"),
		_rule("10.0.0.2", "192.168.0.0/24"),
	]


def test_sync_is_idempotent(host):
	firewall = FirewallSynchronizer(host)

	async def run_twice():
		await firewall.sync_peer_rules("wg0", "10.0.0.2/32", ROUTES)
		await firewall.sync_peer_rules("wg0", "10.0.0.2/32", ROUTES)

	asyncio.run(run_twice())
	assert len(host.rules()) == 2


def test_sync_replaces_previous_destinations(host):
	firewall = FirewallSynchronizer(host)

	async def scenario():
		await firewall.sync_peer_rules("wg0", "10.0.0.2/32", ROUTES)
		await firewall.sync_peer_rules("wg0", "10.0.0.2/32", ["10.0.0.2/32", "172.16.0.0/12"])

	asyncio.run(scenario())
	assert host.rules() == [_rule("10.0.0.2", "172.16.0.0/12")]


def test_sync_with_only_self_leaves_no_rules(host):
	added = asyncio.run(FirewallSynchronizer(host).sync_peer_rules("wg0", "10.0.0.2/32", ["10.0.0.2/32"]))
	assert added == 0
	assert host.rules() == []


def test_remove_only_touches_matching_source(host):
	firewall = FirewallSynchronizer(host)

	async def scenario():
		await firewall.sync_peer_rules("wg0", "10.0.0.2/32", ROUTES)
		await firewall.sync_peer_rules("wg0", "10.0.0.20/32", ROUTES)
		return await firewall.remove_peer_rules("10.0.0.2/32")

	removed = asyncio.run(scenario())
	assert removed == 2
	assert host.rules() == [
		_rule("10.0.0.20", "10.8.0.0/16"),
		_rule("10.0.0.20", "192.168.0.0/24"),
	]


def test_remove_with_missing_chain_is_a_no_op(host):
	assert asyncio.run(FirewallSynchronizer(host).remove_peer_rules("10.0.0.2/32")) == 0


def test_remove_ignores_individual_delete_failures(host):
	firewall = FirewallSynchronizer(host)
	asyncio.run(firewall.sync_peer_rules("wg0", "10.0.0.2/32", ROUTES))
	host.fail("iptables", "-D")

	assert asyncio.run(firewall.remove_peer_rules("10.0.0.2/32")) == 0


def test_flush_keeps_chain_and_jump(host):
	firewall = FirewallSynchronizer(host)
	asyncio.run(firewall.sync_peer_rules("wg0", "10.0.0.2/32", ROUTES))
	asyncio.run(firewall.flush())

	assert host.rules() == []
	assert host.rules("FORWARD") == [f"-A FORWARD -j {FIREWALL_CHAIN}"]


def test_peer_rule_lines_matches_exact_source():
	listing = "\n".join([
		f"-N {FIREWALL_CHAIN}",
		_rule("10.0.0.2", "10.8.0.0/16"),
		_rule("10.0.0.20", "10.8.0.0/16"),
		f"-A {FIREWALL_CHAIN} -i wg0 -s 10.0.0.2 -d 172.16.0.0/12 -j ACCEPT",
	])
	assert peer_rule_lines(listing, "10.0.0.2") == [
		_rule("10.0.0.2", "10.8.0.0/16"),
		f"-A {FIREWALL_CHAIN} -i wg0 -s 10.0.0.2 -d 172.16.0.0/12 -j ACCEPT",
	]
