#!/usr/bin/env python3
#
# wgplane/models/api.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Pydantic request payloads for the admin, self-service and RPC surfaces."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

from .wireguard import InterfaceConfig

_IFACE_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]{0,14}$")


def _check_interface_id(v: str) -> str:
	if not _IFACE_RE.fullmatch(v):
		raise ValueError("Interface must start with letter, max 15 chars, alphanumeric with - or _")
	return v


def _check_single_line(v: str) -> str:
	if "\n" in v or "\r" in v:
		raise ValueError("Value must not contain newlines")
	return v


class InterfaceCreate(BaseModel):
	"""Interface creation payload."""
	id: str = Field(..., max_length=15)
	name: str = Field(..., min_length=1, max_length=128)
	address: str = Field(..., min_length=1, max_length=64, description="Interface address in CIDR form, e.g. 10.0.0.1/24")
	listen_port: int = Field(..., ge=1, le=65535)
	mtu: int = Field(default=1420, ge=576, le=65535)
	endpoint: str = Field(..., min_length=1, max_length=256, description="Public host or host:port")

	@field_validator("id")
	@classmethod
	def interface_valid(cls, v: str) -> str:
		return _check_interface_id(v)
	@field_validator("name", "address", "endpoint")
	@classmethod
	def single_line(cls, v: str) -> str:
		return _check_single_line(v)

	def to_config(self) -> InterfaceConfig:
		return InterfaceConfig(
			id=self.id,
			name=self.name,
			address=self.address,
			listen_port=self.listen_port,
			mtu=self.mtu,
			endpoint=self.endpoint,
		)


class InterfaceUpdate(BaseModel):
	"""Interface update payload; omitted fields keep their stored value."""
	name: str = Field("", max_length=128)
	address: str = Field("", max_length=64)
	listen_port: int = Field(0, ge=0, le=65535)
	mtu: int = Field(0, ge=0, le=65535)
	endpoint: str = Field("", max_length=256)

	@field_validator("name", "address", "endpoint")
	@classmethod
	def single_line(cls, v: str) -> str:
		return _check_single_line(v)

	def to_config(self, interface_id: str) -> InterfaceConfig:
		return InterfaceConfig(
			id=interface_id,
			name=self.name,
			address=self.address,
			listen_port=self.listen_port,
			mtu=self.mtu,
			endpoint=self.endpoint,
		)


class AllowedEmailCreate(BaseModel):
	email: str = Field(..., min_length=3, max_length=254)

	@field_validator("email")
	@classmethod
	def email_shape(cls, v: str) -> str:
		v = v.strip()
		if "@" not in v or any(c.isspace() for c in v):
			raise ValueError("Invalid email address")
		return v.lower()


class RouteCreate(BaseModel):
	cidr: str = Field(..., min_length=1, max_length=43)


class PeerRouteCreate(BaseModel):
	peer_id: str = Field(..., min_length=1, max_length=64)
	cidr: str = Field(..., min_length=1, max_length=43)


class AdminPeerCreate(BaseModel):
	"""Admin peer admission; ``email`` optionally assigns an owner."""
	interface_id: str
	email: str = Field("", max_length=254)

	@field_validator("interface_id")
	@classmethod
	def interface_valid(cls, v: str) -> str:
		return _check_interface_id(v)

	@field_validator("email")
	@classmethod
	def email_normalized(cls, v: str) -> str:
		return v.strip().lower()


class SelfPeerCreate(BaseModel):
	interface_id: str

	@field_validator("interface_id")
	@classmethod
	def interface_valid(cls, v: str) -> str:
		return _check_interface_id(v)


# ─────────────────────────────────────────────────────────────────────────────
# RPC payloads
# ─────────────────────────────────────────────────────────────────────────────

class RpcInterfaceConfig(BaseModel):
	id: str
	name: str = ""
	address: str
	listen_port: int = Field(..., ge=1, le=65535)
	mtu: int = Field(..., ge=576, le=65535)
	endpoint: str = ""

	@field_validator("id")
	@classmethod
	def interface_valid(cls, v: str) -> str:
		return _check_interface_id(v)

	def to_config(self) -> InterfaceConfig:
		return InterfaceConfig(**self.model_dump())


class RpcPeerCreate(BaseModel):
	interface_id: str
	endpoint: str = Field("", max_length=256)
	allowed_ips: list[str] = Field(default_factory=list, max_length=256)

	@field_validator("interface_id")
	@classmethod
	def interface_valid(cls, v: str) -> str:
		return _check_interface_id(v)


class RpcPeerAllowedIPs(BaseModel):
	interface_id: str
	peer_id: str = Field(..., min_length=1, max_length=64)
	allowed_ips: list[str] = Field(..., min_length=1, max_length=256)

	@field_validator("interface_id")
	@classmethod
	def interface_valid(cls, v: str) -> str:
		return _check_interface_id(v)


class RpcPeerRef(BaseModel):
	peer_id: str = Field(..., min_length=1, max_length=64)
