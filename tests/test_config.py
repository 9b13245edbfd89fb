#!/usr/bin/env python3
#
# tests/test_config.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Tests for environment-driven configuration."""

import os

import pytest

from wgplane.utils.config import (
	ConfigValidationError,
	get_config,
	load_config,
	load_dotenv,
	parse_interface_list,
	reset_config,
)


def test_admin_defaults(tmp_path):
	cfg = load_config()
	assert cfg.role == "admin"
	assert cfg.backend == "command"
	assert cfg.port == 8081
	assert cfg.admin_rpc_url == "http://admin-server:8081"
	assert cfg.email_header == "X-Forwarded-Email"
	assert cfg.system_interfaces == frozenset()
	assert cfg.db_path == (tmp_path / "data" / "wgplane.db").resolve()
	assert cfg.data_dir.is_dir()


def test_selfservice_defaults_to_delegating(monkeypatch):
	monkeypatch.setenv("WGPLANE_ROLE", "selfservice")
	cfg = load_config()
	assert cfg.backend == "delegating"
	assert cfg.port == 8080


@pytest.mark.parametrize("role", ["admin", "selfservice"])
def test_dev_mode_uses_simulation(monkeypatch, role):
	monkeypatch.setenv("WGPLANE_ROLE", role)
	monkeypatch.setenv("WGPLANE_DEV", "true")
	assert load_config().backend == "simulation"


def test_explicit_backend_wins(monkeypatch):
	monkeypatch.setenv("WGPLANE_DEV", "1")
	monkeypatch.setenv("WGPLANE_BACKEND", "command")
	assert load_config().backend == "command"


def test_overrides(monkeypatch):
	monkeypatch.setenv("WGPLANE_SYSTEM_WG_INTERFACES", "wg-mgmt, wg-site ,,")
	monkeypatch.setenv("WGPLANE_PORT", "9000")
	monkeypatch.setenv("WGPLANE_RPC_TIMEOUT", "2.5")
	monkeypatch.setenv("WGPLANE_EMAIL_HEADER", "X-Auth-Request-Email")
	monkeypatch.setenv("LOG_LEVEL", "debug")

	cfg = load_config()
	assert cfg.system_interfaces == frozenset({"wg-mgmt", "wg-site"})
	assert cfg.port == 9000
	assert cfg.rpc_timeout == 2.5
	assert cfg.email_header == "X-Auth-Request-Email"
	assert cfg.log_level == "DEBUG"


def test_unknown_log_level_falls_back(monkeypatch):
	monkeypatch.setenv("LOG_LEVEL", "chatty")
	assert load_config().log_level == "INFO"


@pytest.mark.parametrize(
	"name, value",
	[
		("WGPLANE_ROLE", "superuser"),
		("WGPLANE_BACKEND", "docker"),
		("WGPLANE_PORT", "http"),
		("WGPLANE_PORT", "70000"),
		("WGPLANE_COMMAND_TIMEOUT", "-1"),
		("WGPLANE_RPC_TIMEOUT", "soon"),
	],
)
def test_invalid_values(monkeypatch, name, value):
	monkeypatch.setenv(name, value)
	with pytest.raises(ConfigValidationError):
		load_config()


def test_get_config_is_cached(monkeypatch):
	first = get_config()
	monkeypatch.setenv("WGPLANE_ROLE", "selfservice")
	assert get_config() is first
	reset_config()
	assert get_config().role == "selfservice"


def test_parse_interface_list():
	assert parse_interface_list("") == frozenset()
	assert parse_interface_list("wg0,wg1") == frozenset({"wg0", "wg1"})


def test_load_dotenv_never_overrides_environment(monkeypatch, tmp_path):
	env_file = tmp_path / "settings.env"
	env_file.write_text(
		"# comment\n"
		"WGPLANE_ROLE=admin\n"
		"export WGPLANE_ADMIN_TOKEN=\"s3cret # not a comment\"\n"
		"WGPLANE_RPC_TOKEN=abc # trailing comment\n",
		encoding="utf-8",
	)
	monkeypatch.setenv("WGPLANE_ROLE", "selfservice")
	monkeypatch.setenv("WGPLANE_ADMIN_TOKEN", "")
	monkeypatch.setenv("WGPLANE_RPC_TOKEN", "")
	monkeypatch.delenv("WGPLANE_ADMIN_TOKEN")
	monkeypatch.delenv("WGPLANE_RPC_TOKEN")

	load_dotenv(env_file)

	assert os.environ["WGPLANE_ROLE"] == "selfservice"
	assert os.environ["WGPLANE_ADMIN_TOKEN"] == "s3cret # not a comment"
	assert os.environ["WGPLANE_RPC_TOKEN"] == "abc"
