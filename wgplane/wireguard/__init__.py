#!/usr/bin/env python3
#
# wgplane/wireguard/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Live-state engine: allocation, peer configs, repository backends, firewall, bootstrap."""
