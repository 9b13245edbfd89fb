#!/usr/bin/env python3
#
# wgplane/db/sqlite_peers.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Peer record queries and mutations."""

from __future__ import annotations

import sqlite3
from typing import Optional

from ..models.wireguard import PeerRecord
from ..utils.time import utcnow
from .sqlite_runtime import transaction


def _row_to_record(row: sqlite3.Row) -> PeerRecord:
	return PeerRecord(
		email=row["email"],
		peer_id=row["peer_id"],
		interface_id=row["interface_id"],
		allowed_ip=row["allowed_ip"],
		config=row["config"],
		created_at=row["created_at"],
	)


def _one(cur: sqlite3.Cursor) -> Optional[PeerRecord]:
	row = cur.fetchone()
	return _row_to_record(row) if row else None


# ---------------------------------------------------------------------------
# Peer operations (read/query)
# ---------------------------------------------------------------------------

def get_peer_by_peer_id(conn: sqlite3.Connection, peer_id: str) -> Optional[PeerRecord]:
	return _one(conn.execute("SELECT * FROM peers WHERE peer_id = ?", (peer_id,)))


def get_peer_by_email(conn: sqlite3.Connection, email: str) -> Optional[PeerRecord]:
	"""Get the oldest peer owned by an email."""
	return _one(conn.execute(
		"SELECT * FROM peers WHERE email = ? ORDER BY created_at, peer_id LIMIT 1",
		(email,),
	))


def get_peer_by_email_and_interface(
	conn: sqlite3.Connection,
	email: str,
	interface_id: str,
) -> Optional[PeerRecord]:
	return _one(conn.execute(
		"SELECT * FROM peers WHERE email = ? AND interface_id = ?",
		(email, interface_id),
	))


def list_peers(conn: sqlite3.Connection, interface_id: Optional[str] = None) -> list[PeerRecord]:
	"""List peer records, optionally filtered by interface."""
	if interface_id:
		cur = conn.execute(
			"SELECT * FROM peers WHERE interface_id = ? ORDER BY created_at, peer_id",
			(interface_id,),
		)
	else:
		cur = conn.execute("SELECT * FROM peers ORDER BY interface_id, created_at, peer_id")
	return [_row_to_record(row) for row in cur.fetchall()]


def list_peers_by_interface(conn: sqlite3.Connection, interface_id: str) -> list[PeerRecord]:
	return list_peers(conn, interface_id)


def list_peers_by_email(conn: sqlite3.Connection, email: str) -> list[PeerRecord]:
	cur = conn.execute(
		"SELECT * FROM peers WHERE email = ? ORDER BY interface_id, created_at",
		(email,),
	)
	return [_row_to_record(row) for row in cur.fetchall()]


# ---------------------------------------------------------------------------
# Peer operations (mutations)
# ---------------------------------------------------------------------------

def create_peer(conn: sqlite3.Connection, record: PeerRecord) -> PeerRecord:
	"""Persist a peer record and return it with its creation time.

	Raises:
		sqlite3.IntegrityError: On a duplicate peer id or (email, interface) pair.
	"""
	created_at = record.created_at or utcnow()
	with transaction(conn):
		conn.execute(
			"""
			INSERT INTO peers (peer_id, email, interface_id, allowed_ip, config, created_at)
			VALUES (?, ?, ?, ?, ?, ?)
			""",
			(record.peer_id, record.email, record.interface_id, record.allowed_ip, record.config, created_at),
		)
	record.created_at = created_at
	return record


def update_peer_config(conn: sqlite3.Connection, peer_id: str, config: str) -> bool:
	with transaction(conn):
		cur = conn.execute("UPDATE peers SET config = ? WHERE peer_id = ?", (config, peer_id))
		return cur.rowcount > 0


def delete_peer_by_peer_id(conn: sqlite3.Connection, peer_id: str) -> bool:
	with transaction(conn):
		cur = conn.execute("DELETE FROM peers WHERE peer_id = ?", (peer_id,))
		return cur.rowcount > 0


def delete_peers_by_interface(conn: sqlite3.Connection, interface_id: str) -> int:
	with transaction(conn):
		cur = conn.execute("DELETE FROM peers WHERE interface_id = ?", (interface_id,))
		return cur.rowcount
