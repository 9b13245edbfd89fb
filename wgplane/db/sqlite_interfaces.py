#!/usr/bin/env python3
#
# wgplane/db/sqlite_interfaces.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Interface config CRUD operations."""

from __future__ import annotations

import sqlite3

from ..models.wireguard import InterfaceConfig
from ..utils.time import utcnow
from .sqlite_runtime import transaction


def _row_to_config(row: sqlite3.Row) -> InterfaceConfig:
	return InterfaceConfig(
		id=row["id"],
		name=row["name"],
		address=row["address"],
		listen_port=int(row["listen_port"]),
		mtu=int(row["mtu"]),
		endpoint=row["endpoint"],
	)


# ─────────────────────────────────────────────────────────────────────────────
# Interface CRUD functions
# ─────────────────────────────────────────────────────────────────────────────


def create_interface(conn: sqlite3.Connection, config: InterfaceConfig) -> None:
	"""Persist a new interface config.

	Raises:
		sqlite3.IntegrityError: If the id is already taken.
	"""
	now = utcnow()
	with transaction(conn):
		conn.execute(
			"""
			INSERT INTO interfaces (id, name, address, listen_port, mtu, endpoint, created_at, updated_at)
			VALUES (?, ?, ?, ?, ?, ?, ?, ?)
			""",
			(config.id, config.name, config.address, config.listen_port, config.mtu, config.endpoint, now, now),
		)


def get_interface(conn: sqlite3.Connection, interface_id: str) -> InterfaceConfig | None:
	"""Get an interface config by id."""
	row = conn.execute("SELECT * FROM interfaces WHERE id = ?", (interface_id,)).fetchone()
	return _row_to_config(row) if row else None


def list_interfaces(conn: sqlite3.Connection) -> list[InterfaceConfig]:
	"""List all interface configs ordered by id."""
	rows = conn.execute("SELECT * FROM interfaces ORDER BY id").fetchall()
	return [_row_to_config(row) for row in rows]


def update_interface(conn: sqlite3.Connection, config: InterfaceConfig) -> bool:
	"""Overwrite a stored interface config. Returns False if it does not exist."""
	with transaction(conn):
		cur = conn.execute(
			"""
			UPDATE interfaces
			SET name = ?, address = ?, listen_port = ?, mtu = ?, endpoint = ?, updated_at = ?
			WHERE id = ?
			""",
			(config.name, config.address, config.listen_port, config.mtu, config.endpoint, utcnow(), config.id),
		)
		return cur.rowcount > 0


def delete_interface(conn: sqlite3.Connection, interface_id: str) -> bool:
	"""Delete an interface config. Returns False if it did not exist."""
	with transaction(conn):
		cur = conn.execute("DELETE FROM interfaces WHERE id = ?", (interface_id,))
		return cur.rowcount > 0
