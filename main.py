#!/usr/bin/env python3
#
# main.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

# wgplane - WireGuard control plane
# Local development entry point
#

import os

import uvicorn
from wgplane.utils.config import load_config

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Uvicorn logging dict-config that reuses the same format as the app
_UVICORN_LOG_CONFIG: dict = {
	"version": 1,
	"disable_existing_loggers": False,
	"formatters": {
		"default": {"format": _LOG_FORMAT, "datefmt": _DATE_FORMAT},
		"access": {"format": _LOG_FORMAT, "datefmt": _DATE_FORMAT},
	},
	"handlers": {
		"default": {
			"formatter": "default",
			"class": "logging.StreamHandler",
			"stream": "ext://sys.stderr",
		},
		"access": {
			"formatter": "access",
			"class": "logging.StreamHandler",
			"stream": "ext://sys.stdout",
		},
	},
	"loggers": {
		"uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
		"uvicorn.error": {"level": "INFO"},
		"uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
	},
}

if __name__ == "__main__":
	cfg = load_config()

	_level = cfg.log_level.upper()
	for _logger in _UVICORN_LOG_CONFIG["loggers"].values():
		_logger["level"] = _level

	# The lifespan bootstrap owns the host's WireGuard state, so a single
	# worker per role is required.
	uvicorn.run(
		"wgplane:create_app",
		host=cfg.host,
		port=cfg.port,
		reload=os.environ.get("WGPLANE_DEV_RELOAD", "").lower() in ("1", "true", "yes"),
		factory=True,
		workers=1,
		log_config=_UVICORN_LOG_CONFIG,
	)
