#!/usr/bin/env python3
#
# wgplane/utils/config.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Configuration loading and app-level defaults."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path

_log = logging.getLogger(__name__)


class ConfigValidationError(Exception):
	"""Raised when critical configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Fixed constants
# ---------------------------------------------------------------------------
ROLES = frozenset({"admin", "selfservice"})
BACKENDS = frozenset({"command", "delegating", "simulation"})
DEFAULT_ADMIN_RPC_URL = "http://admin-server:8081"
DEFAULT_EMAIL_HEADER = "X-Forwarded-Email"
_DEFAULT_PORTS = {"admin": 8081, "selfservice": 8080}
_TRUTHY = ("1", "true", "yes")


@dataclass(frozen=True)
class Config:
	"""Resolved runtime configuration derived from env and defaults."""
	base_dir: Path
	data_dir: Path
	db_path: Path
	role: str = "admin"
	backend: str = "command"
	dev_mode: bool = False
	admin_rpc_url: str = DEFAULT_ADMIN_RPC_URL
	rpc_token: str = ""
	admin_token: str = ""
	email_header: str = DEFAULT_EMAIL_HEADER
	system_interfaces: frozenset[str] = field(default_factory=frozenset)
	command_timeout: float = 30.0
	rpc_timeout: float = 30.0
	host: str = "0.0.0.0"
	port: int = 8081
	log_level: str = "INFO"


def _parse_value(raw: str) -> str:
	"""Extract value, respecting quotes and stripping inline comments."""
	raw = raw.strip()
	if raw and raw[0] in ('"', "'"):
		quote = raw[0]
		end = raw.find(quote, 1)
		if end != -1:
			return raw[1:end]
	if " #" in raw:
		raw = raw.split(" #", 1)[0]
	return raw.strip()


def load_dotenv(dotenv_path: Path | None = None) -> None:
	"""Load simple KEY=VALUE pairs from settings.env.

	Already-set environment variables always win over the file.
	"""
	project_root = Path(__file__).resolve().parents[2]
	dotenv_path = dotenv_path or (project_root / "settings.env")
	if not dotenv_path.exists():
		return
	for raw_line in dotenv_path.read_text(encoding="utf-8").splitlines():
		line = raw_line.strip()
		if not line or line.startswith("#") or "=" not in line:
			continue
		key, value = line.split("=", 1)
		key = key.strip()
		if key.startswith("export "):
			key = key[7:].strip()
		if not key:
			continue
		os.environ.setdefault(key, _parse_value(value))


def parse_interface_list(raw: str) -> frozenset[str]:
	"""Parse a comma-separated interface list, ignoring blanks."""
	return frozenset(part.strip() for part in raw.split(",") if part.strip())


def _env_float(name: str, default: float) -> float:
	raw = os.getenv(name, "").strip()
	if not raw:
		return default
	try:
		value = float(raw)
	except ValueError as exc:
		raise ConfigValidationError(f"{name} must be a number, got {raw!r}") from exc
	if value <= 0:
		raise ConfigValidationError(f"{name} must be positive, got {raw!r}")
	return value


def _resolve_backend(role: str, dev_mode: bool) -> str:
	explicit = os.getenv("WGPLANE_BACKEND", "").strip().lower()
	if explicit:
		if explicit not in BACKENDS:
			raise ConfigValidationError(
				f"WGPLANE_BACKEND must be one of {sorted(BACKENDS)}, got {explicit!r}"
			)
		return explicit
	if dev_mode:
		return "simulation"
	return "command" if role == "admin" else "delegating"


def load_config() -> Config:
	"""Load configuration from environment variables (optionally via settings.env)."""
	load_dotenv()
	project_root = Path(__file__).resolve().parents[2]

	data_dir = Path(os.getenv("WGPLANE_DATA_DIR", str(project_root / "data"))).resolve()
	db_path = (data_dir / "wgplane.db").resolve()
	try:
		if data_dir.exists() and not data_dir.is_dir():
			raise ConfigValidationError(f"Path exists but is not a directory: {data_dir}")
		data_dir.mkdir(parents=True, exist_ok=True)
	except OSError as exc:
		raise ConfigValidationError(f"Cannot create data directory: {exc}") from exc

	role = os.getenv("WGPLANE_ROLE", "admin").strip().lower()
	if role not in ROLES:
		raise ConfigValidationError(f"WGPLANE_ROLE must be one of {sorted(ROLES)}, got {role!r}")

	dev_mode = os.getenv("WGPLANE_DEV", "").strip().lower() in _TRUTHY
	backend = _resolve_backend(role, dev_mode)

	port_raw = os.getenv("WGPLANE_PORT", "").strip()
	if port_raw:
		try:
			port = int(port_raw)
		except ValueError as exc:
			raise ConfigValidationError(f"WGPLANE_PORT must be an integer, got {port_raw!r}") from exc
		if not 1 <= port <= 65535:
			raise ConfigValidationError(f"WGPLANE_PORT out of range: {port}")
	else:
		port = _DEFAULT_PORTS[role]

	# Validate log level
	allowed_levels = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
	log_level = os.getenv("LOG_LEVEL", "INFO").upper()
	if log_level not in allowed_levels:
		log_level = "INFO"

	email_header = os.getenv("WGPLANE_EMAIL_HEADER", "").strip() or DEFAULT_EMAIL_HEADER

	return Config(
		base_dir=project_root,
		data_dir=data_dir,
		db_path=db_path,
		role=role,
		backend=backend,
		dev_mode=dev_mode,
		admin_rpc_url=os.getenv("WGPLANE_ADMIN_RPC_URL", "").strip() or DEFAULT_ADMIN_RPC_URL,
		rpc_token=os.getenv("WGPLANE_RPC_TOKEN", ""),
		admin_token=os.getenv("WGPLANE_ADMIN_TOKEN", ""),
		email_header=email_header,
		system_interfaces=parse_interface_list(os.getenv("WGPLANE_SYSTEM_WG_INTERFACES", "")),
		command_timeout=_env_float("WGPLANE_COMMAND_TIMEOUT", 30.0),
		rpc_timeout=_env_float("WGPLANE_RPC_TIMEOUT", 30.0),
		host=os.getenv("WGPLANE_HOST", "").strip() or "0.0.0.0",
		port=port,
		log_level=log_level,
	)


# Global config singleton with thread-safe lazy initialization
_config: Config | None = None
_config_lock = threading.Lock()


def get_config() -> Config:
	"""Get the global config singleton (thread-safe)."""
	global _config
	if _config is None:
		with _config_lock:
			if _config is None:  # Double-checked locking
				_config = load_config()
	return _config


def reset_config() -> None:
	"""Reset the cached config. Intended for tests only."""
	global _config
	with _config_lock:
		_config = None
