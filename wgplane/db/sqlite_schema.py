#!/usr/bin/env python3
#
# wgplane/db/sqlite_schema.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""SQLite schema initialization."""

from __future__ import annotations

import logging
import sqlite3

from .sqlite_runtime import transaction

_log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Schema Initialization
# ─────────────────────────────────────────────────────────────────────────────


def init_schema(conn: sqlite3.Connection) -> None:
	"""Create the desired-state schema (idempotent)."""
	with transaction(conn):
		# Desired interface state
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS interfaces (
				id TEXT PRIMARY KEY,
				name TEXT NOT NULL,
				address TEXT NOT NULL,
				listen_port INTEGER NOT NULL,
				mtu INTEGER NOT NULL,
				endpoint TEXT NOT NULL,
				created_at timestamp NOT NULL,
				updated_at timestamp NOT NULL
			)
			"""
		)

		# Admitted peers; peer_id is the peer's public key
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS peers (
				peer_id TEXT PRIMARY KEY,
				email TEXT NOT NULL DEFAULT '',
				interface_id TEXT NOT NULL,
				allowed_ip TEXT NOT NULL,
				config TEXT NOT NULL,
				created_at timestamp NOT NULL
			)
			"""
		)
		conn.execute("CREATE INDEX IF NOT EXISTS idx_peers_interface_id ON peers(interface_id)")
		conn.execute(
			"""
			CREATE UNIQUE INDEX IF NOT EXISTS idx_peers_email_interface
			ON peers(email, interface_id) WHERE email != ''
			"""
		)

		# Access grants
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS allowed_emails (
				interface_id TEXT NOT NULL,
				email TEXT NOT NULL,
				created_at timestamp NOT NULL,
				PRIMARY KEY (interface_id, email)
			)
			"""
		)
		conn.execute("CREATE INDEX IF NOT EXISTS idx_allowed_emails_email ON allowed_emails(email)")

		# Routes
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS interface_allowed_routes (
				interface_id TEXT NOT NULL,
				cidr TEXT NOT NULL,
				created_at timestamp NOT NULL,
				PRIMARY KEY (interface_id, cidr)
			)
			"""
		)
		conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS peer_allowed_routes (
				peer_id TEXT NOT NULL,
				cidr TEXT NOT NULL,
				created_at timestamp NOT NULL,
				PRIMARY KEY (peer_id, cidr)
			)
			"""
		)
	_log.debug("SQLITE_SCHEMA ready")
