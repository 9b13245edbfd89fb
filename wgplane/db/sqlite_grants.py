#!/usr/bin/env python3
#
# wgplane/db/sqlite_grants.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Access grant (allowed email) operations."""

from __future__ import annotations

import sqlite3

from ..models.wireguard import AllowedEmail
from ..utils.time import utcnow
from .sqlite_runtime import transaction


def list_grants_by_interface(conn: sqlite3.Connection, interface_id: str) -> list[AllowedEmail]:
	rows = conn.execute(
		"SELECT * FROM allowed_emails WHERE interface_id = ? ORDER BY email",
		(interface_id,),
	).fetchall()
	return [AllowedEmail(row["interface_id"], row["email"], row["created_at"]) for row in rows]


def list_interface_ids_by_email(conn: sqlite3.Connection, email: str) -> list[str]:
	rows = conn.execute(
		"SELECT interface_id FROM allowed_emails WHERE email = ? ORDER BY interface_id",
		(email,),
	).fetchall()
	return [row["interface_id"] for row in rows]


def grant_exists(conn: sqlite3.Connection, interface_id: str, email: str) -> bool:
	row = conn.execute(
		"SELECT 1 FROM allowed_emails WHERE interface_id = ? AND email = ?",
		(interface_id, email),
	).fetchone()
	return row is not None


def create_grant(conn: sqlite3.Connection, interface_id: str, email: str) -> None:
	"""Create a grant; granting twice is a no-op."""
	with transaction(conn):
		conn.execute(
			"""
			INSERT INTO allowed_emails (interface_id, email, created_at)
			VALUES (?, ?, ?)
			ON CONFLICT(interface_id, email) DO NOTHING
			""",
			(interface_id, email, utcnow()),
		)


def delete_grant(conn: sqlite3.Connection, interface_id: str, email: str) -> bool:
	with transaction(conn):
		cur = conn.execute(
			"DELETE FROM allowed_emails WHERE interface_id = ? AND email = ?",
			(interface_id, email),
		)
		return cur.rowcount > 0


def delete_grants_by_interface(conn: sqlite3.Connection, interface_id: str) -> int:
	with transaction(conn):
		cur = conn.execute("DELETE FROM allowed_emails WHERE interface_id = ?", (interface_id,))
		return cur.rowcount
