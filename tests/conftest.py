#!/usr/bin/env python3
#
# tests/conftest.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Shared fixtures: temporary database, scripted host and backends."""

from __future__ import annotations

import os

import pytest

from wgplane.db.sqlite_runtime import close_connection, connect
from wgplane.db.sqlite_schema import init_schema
from wgplane.services import common
from wgplane.utils import config as config_module
from wgplane.utils.rate_limit import limiter
from wgplane.wireguard.repo_command import CommandRepository
from wgplane.wireguard.repo_simulation import SimulationRepository
from tests.helpers import FakeHost


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
	for name in list(os.environ):
		if name.startswith("WGPLANE_") or name == "LOG_LEVEL":
			monkeypatch.delenv(name, raising=False)
	monkeypatch.setenv("WGPLANE_DATA_DIR", str(tmp_path / "data"))
	# Never pick up a developer's settings.env
	monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: None)
	config_module.reset_config()
	yield
	config_module.reset_config()


@pytest.fixture(autouse=True)
def fresh_locks(monkeypatch):
	monkeypatch.setattr(common, "_INTERFACE_LOCKS", {})


@pytest.fixture(autouse=True)
def reset_rate_limits():
	limiter.reset()
	yield


@pytest.fixture
def db_path(tmp_path):
	return tmp_path / "wgplane.db"


@pytest.fixture
def conn(db_path):
	conn = connect(db_path)
	init_schema(conn)
	yield conn
	close_connection(conn)


@pytest.fixture
def host():
	return FakeHost()


@pytest.fixture
def command_repo(host):
	return CommandRepository(host)


@pytest.fixture
def sim_repo(db_path, conn):
	return SimulationRepository(db_path)
