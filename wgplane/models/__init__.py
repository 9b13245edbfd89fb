#!/usr/bin/env python3
#
# wgplane/models/__init__.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Domain records and API payload models."""
