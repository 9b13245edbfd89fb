#!/usr/bin/env python3
#
# wgplane/wireguard/repo_delegating.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Delegating backend: forwards repository calls to the privileged instance.

Only the domain operations exposed under ``/rpc`` can be requested; there is
no way to run an arbitrary command through this client. Firewall mutations
are refused locally with ``UnsupportedError`` because the privileged side
syncs the firewall inside its own peer operations.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import httpx

from ..errors import (
	AlreadyExistsError,
	ForbiddenError,
	InterfaceNotFoundError,
	NotFoundError,
	PeerNotFoundError,
	RPCError,
	UnsupportedError,
	ValidationError,
	WgPlaneError,
)
from ..models.wireguard import InterfaceConfig, LiveInterface, PeerStat, RunningConfig, WireguardPeer, to_dict

_log = logging.getLogger(__name__)

__all__ = ["DelegatingRepository", "RPC_TOKEN_HEADER"]

RPC_TOKEN_HEADER = "X-RPC-Token"

_ERRORS_BY_NAME: dict[str, type[WgPlaneError]] = {
	"InterfaceNotFoundError": InterfaceNotFoundError,
	"PeerNotFoundError": PeerNotFoundError,
}

_ERRORS_BY_STATUS: dict[int, type[WgPlaneError]] = {
	400: ValidationError,
	403: ForbiddenError,
	404: NotFoundError,
	409: AlreadyExistsError,
	501: UnsupportedError,
}


def _live(item: dict[str, Any]) -> LiveInterface:
	return LiveInterface(
		id=item["id"],
		name=item["name"],
		address=item["address"],
		listen_port=int(item["listen_port"]),
		public_key=item["public_key"],
		mtu=int(item["mtu"]),
	)


class DelegatingRepository:
	firewall_capable = False

	def __init__(
		self,
		base_url: str,
		*,
		token: str = "",
		timeout: float = 30.0,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	):
		self.base_url = base_url.rstrip("/")
		self.token = token
		self.timeout = timeout
		self.transport = transport
		self._client: Optional[httpx.AsyncClient] = None

	def _http(self) -> httpx.AsyncClient:
		if self._client is None:
			headers = {RPC_TOKEN_HEADER: self.token} if self.token else {}
			self._client = httpx.AsyncClient(
				base_url=self.base_url,
				timeout=self.timeout,
				headers=headers,
				transport=self.transport,
			)
		return self._client

	async def aclose(self) -> None:
		if self._client is not None:
			await self._client.aclose()
			self._client = None

	async def _call(self, method: str, path: str, *, json: Any = None, params: Optional[dict] = None) -> Any:
		name = f"{method} {path}"
		try:
			resp = await self._http().request(method, f"/rpc{path}", json=json, params=params)
		except httpx.HTTPError as exc:
			raise RPCError(name, None, str(exc) or type(exc).__name__) from exc

		try:
			body = resp.json()
		except ValueError:
			body = {}
		if not isinstance(body, dict):
			body = {}

		if resp.is_success:
			return body.get("data")

		detail = str(body.get("detail") or resp.text or resp.reason_phrase)
		error_cls = _ERRORS_BY_NAME.get(str(body.get("error", ""))) or _ERRORS_BY_STATUS.get(resp.status_code)
		_log.warning("RPC_FAILED call=%r status=%d detail=%s", name, resp.status_code, detail)
		if error_cls is InterfaceNotFoundError or error_cls is PeerNotFoundError:
			raise error_cls()
		if error_cls is not None:
			raise error_cls(detail)
		raise RPCError(name, resp.status_code, detail)

	# ─── interfaces ──────────────────────────────────────────

	async def list_interfaces(self) -> list[LiveInterface]:
		return [_live(item) for item in await self._call("GET", "/interfaces") or []]

	async def get_interface(self, interface_id: str) -> LiveInterface:
		return _live(await self._call("GET", f"/interfaces/{interface_id}"))

	async def create_interface(self, config: InterfaceConfig) -> LiveInterface:
		return _live(await self._call("POST", "/interfaces", json=to_dict(config)))

	async def update_interface(self, config: InterfaceConfig) -> LiveInterface:
		return _live(await self._call("PUT", f"/interfaces/{config.id}", json=to_dict(config)))

	async def delete_interface(self, interface_id: str) -> None:
		await self._call("DELETE", f"/interfaces/{interface_id}")

	# ─── peers ───────────────────────────────────────────────

	async def create_peer(self, interface_id: str, endpoint: str, allowed_ips: Sequence[str]) -> WireguardPeer:
		data = await self._call(
			"POST",
			"/peers",
			json={"interface_id": interface_id, "endpoint": endpoint, "allowed_ips": list(allowed_ips)},
		)
		return WireguardPeer(
			id=data["id"],
			interface_id=data["interface_id"],
			allowed_ip=data["allowed_ip"],
			config=data["config"],
		)

	async def update_peer_allowed_ips(self, interface_id: str, peer_id: str, allowed_ips: Sequence[str]) -> None:
		await self._call(
			"PUT",
			"/peers/allowed-ips",
			json={"interface_id": interface_id, "peer_id": peer_id, "allowed_ips": list(allowed_ips)},
		)

	async def delete_peer(self, peer_id: str) -> None:
		await self._call("POST", "/peers/delete", json={"peer_id": peer_id})

	async def find_peer_address(self, peer_id: str, interface_id: str = "") -> Optional[str]:
		raise UnsupportedError("live peer address lookup is not supported by the delegating backend")

	async def list_peer_stats(self) -> list[PeerStat]:
		return [PeerStat(**item) for item in await self._call("GET", "/peers/stats") or []]

	async def list_configs(self, interface_id: str = "") -> list[RunningConfig]:
		params = {"interface_id": interface_id} if interface_id else None
		return [RunningConfig(**item) for item in await self._call("GET", "/configs", params=params) or []]

	# ─── firewall ────────────────────────────────────────────

	async def list_firewall_rules(self) -> str:
		return await self._call("GET", "/firewall/rules") or ""

	async def ensure_firewall_chain(self) -> None:
		raise UnsupportedError("firewall chain management is not supported by the delegating backend")

	async def sync_peer_firewall_rules(self, interface_id: str, peer_allowed_ip: str, allowed_ips: Sequence[str]) -> None:
		raise UnsupportedError("firewall rule sync is not supported by the delegating backend")

	async def remove_peer_firewall_rules(self, peer_allowed_ip: str) -> None:
		raise UnsupportedError("firewall rule removal is not supported by the delegating backend")
