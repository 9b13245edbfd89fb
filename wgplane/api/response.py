#!/usr/bin/env python3
#
# wgplane/api/response.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Common API response helpers."""

from __future__ import annotations

import dataclasses
from typing import Any


def _jsonable(data: Any) -> Any:
	if dataclasses.is_dataclass(data) and not isinstance(data, type):
		return dataclasses.asdict(data)
	if isinstance(data, list):
		return [_jsonable(item) for item in data]
	return data


def ok_response(
	*,
	message: str | None = None,
	data: Any = None,
	**extra: Any,
) -> dict[str, Any]:
	"""Build a normalized success response; domain dataclasses are converted to dicts."""
	payload: dict[str, Any] = {"status": "ok"}
	if message is not None:
		payload["message"] = message
	if data is not None:
		payload["data"] = _jsonable(data)
	if extra:
		payload.update(extra)
	return payload
