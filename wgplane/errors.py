#!/usr/bin/env python3
#
# wgplane/errors.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Error taxonomy shared by the repository backends, services and API."""

from __future__ import annotations

from typing import Sequence

__all__ = [
	"WgPlaneError",
	"NotFoundError",
	"InterfaceNotFoundError",
	"PeerNotFoundError",
	"RecordNotFoundError",
	"ForbiddenError",
	"EmailNotAllowedError",
	"AlreadyExistsError",
	"UnsupportedError",
	"ValidationError",
	"AllocationError",
	"ExternalOperationError",
	"CommandError",
	"RPCError",
]


class WgPlaneError(Exception):
	"""Base class for all domain errors."""

	kind = "error"


# ─────────────────────────────────────────────────────────────────────────────
# Lookup / authorization
# ─────────────────────────────────────────────────────────────────────────────

class NotFoundError(WgPlaneError):
	kind = "not_found"


class InterfaceNotFoundError(NotFoundError):
	def __init__(self, interface_id: str = ""):
		self.interface_id = interface_id
		super().__init__(f"interface not found: {interface_id}" if interface_id else "interface not found")


class PeerNotFoundError(NotFoundError):
	def __init__(self, peer_id: str = ""):
		self.peer_id = peer_id
		super().__init__(f"peer not found: {peer_id}" if peer_id else "peer not found")


class RecordNotFoundError(NotFoundError):
	"""A persisted record (grant, route, ...) does not exist."""


class ForbiddenError(WgPlaneError):
	kind = "forbidden"


class EmailNotAllowedError(ForbiddenError):
	def __init__(self, email: str, interface_id: str):
		self.email = email
		self.interface_id = interface_id
		super().__init__(f"email is not allowed on interface {interface_id}")


class AlreadyExistsError(WgPlaneError):
	kind = "already_exists"


class UnsupportedError(WgPlaneError):
	"""The active backend does not implement the requested capability."""

	kind = "unsupported"


class ValidationError(WgPlaneError):
	kind = "validation"


class AllocationError(ValidationError):
	"""No address can be allocated from an interface prefix."""


# ─────────────────────────────────────────────────────────────────────────────
# External operations
# ─────────────────────────────────────────────────────────────────────────────

class ExternalOperationError(WgPlaneError):
	"""A host command, remote call or store operation failed."""

	kind = "external"


class CommandError(ExternalOperationError):
	"""A spawned host command exited non-zero or timed out.

	``output`` holds the trimmed combined stdout/stderr so callers can inspect
	the failure text (e.g. "does not exist").
	"""

	def __init__(self, argv: Sequence[str], returncode: int | None, output: str, reason: str = ""):
		self.argv = tuple(argv)
		self.returncode = returncode
		self.output = output
		detail = reason or output or f"exit status {returncode}"
		super().__init__(f"command failed: {' '.join(self.argv)}: {detail}")


class RPCError(ExternalOperationError):
	"""A delegated call to the privileged instance failed."""

	def __init__(self, method: str, status_code: int | None, detail: str):
		self.method = method
		self.status_code = status_code
		self.detail = detail
		super().__init__(f"rpc {method} failed ({status_code}): {detail}")
