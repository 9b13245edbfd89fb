#!/usr/bin/env python3
#
# wgplane/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""wgplane – WireGuard control plane for admin and self-service hosts."""

from .main import create_app

__all__ = ["create_app"]
