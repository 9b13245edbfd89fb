#!/usr/bin/env python3
#
# wgplane/db/sqlite_routes.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Interface-wide and per-peer allowed route operations."""

from __future__ import annotations

import sqlite3

from ..models.wireguard import InterfaceRoute, PeerRoute
from ..utils.time import utcnow
from .sqlite_runtime import transaction


# ─────────────────────────────────────────────────────────────────────────────
# Interface routes
# ─────────────────────────────────────────────────────────────────────────────


def list_interface_routes(conn: sqlite3.Connection, interface_id: str) -> list[InterfaceRoute]:
	rows = conn.execute(
		"SELECT * FROM interface_allowed_routes WHERE interface_id = ? ORDER BY cidr",
		(interface_id,),
	).fetchall()
	return [InterfaceRoute(row["interface_id"], row["cidr"], row["created_at"]) for row in rows]


def create_interface_route(conn: sqlite3.Connection, interface_id: str, cidr: str) -> None:
	with transaction(conn):
		conn.execute(
			"""
			INSERT INTO interface_allowed_routes (interface_id, cidr, created_at)
			VALUES (?, ?, ?)
			ON CONFLICT(interface_id, cidr) DO NOTHING
			""",
			(interface_id, cidr, utcnow()),
		)


def delete_interface_route(conn: sqlite3.Connection, interface_id: str, cidr: str) -> bool:
	with transaction(conn):
		cur = conn.execute(
			"DELETE FROM interface_allowed_routes WHERE interface_id = ? AND cidr = ?",
			(interface_id, cidr),
		)
		return cur.rowcount > 0


def delete_interface_routes_by_interface(conn: sqlite3.Connection, interface_id: str) -> int:
	with transaction(conn):
		cur = conn.execute("DELETE FROM interface_allowed_routes WHERE interface_id = ?", (interface_id,))
		return cur.rowcount


# ─────────────────────────────────────────────────────────────────────────────
# Peer routes
# ─────────────────────────────────────────────────────────────────────────────


def list_peer_routes(conn: sqlite3.Connection, peer_id: str) -> list[PeerRoute]:
	rows = conn.execute(
		"SELECT * FROM peer_allowed_routes WHERE peer_id = ? ORDER BY cidr",
		(peer_id,),
	).fetchall()
	return [PeerRoute(row["peer_id"], row["cidr"], row["created_at"]) for row in rows]


def create_peer_route(conn: sqlite3.Connection, peer_id: str, cidr: str) -> None:
	with transaction(conn):
		conn.execute(
			"""
			INSERT INTO peer_allowed_routes (peer_id, cidr, created_at)
			VALUES (?, ?, ?)
			ON CONFLICT(peer_id, cidr) DO NOTHING
			""",
			(peer_id, cidr, utcnow()),
		)


def delete_peer_route(conn: sqlite3.Connection, peer_id: str, cidr: str) -> bool:
	with transaction(conn):
		cur = conn.execute(
			"DELETE FROM peer_allowed_routes WHERE peer_id = ? AND cidr = ?",
			(peer_id, cidr),
		)
		return cur.rowcount > 0


def delete_peer_routes_by_peer(conn: sqlite3.Connection, peer_id: str) -> int:
	with transaction(conn):
		cur = conn.execute("DELETE FROM peer_allowed_routes WHERE peer_id = ?", (peer_id,))
		return cur.rowcount
