#!/usr/bin/env python3
#
# wgplane/wireguard/runner.py
# Copyright (C) 2025-2026 Gill-Bates http://github.com/Gill-Bates
#

"""Injectable host command execution.

The command backend, the firewall synchronizer and bootstrap never spawn
processes themselves; they go through a ``CommandRunner`` so tests can swap
in a scripted fake.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from ..errors import CommandError

_log = logging.getLogger(__name__)

__all__ = [
	"CommandRunner",
	"SubprocessRunner",
	"COMMAND_TIMEOUT",
]

# Timeout for host commands (seconds)
COMMAND_TIMEOUT = 30.0

# Secondary timeout for process cleanup after kill (seconds)
_KILL_WAIT_TIMEOUT = 5.0


class CommandRunner(Protocol):
	async def run(self, *argv: str, stdin: Optional[str] = None) -> str:
		"""Run ``argv`` and return its trimmed combined output.

		Raises:
			CommandError: On a non-zero exit, a timeout or a missing binary.
		"""
		...


async def _kill(proc: asyncio.subprocess.Process) -> None:
	if proc.returncode is not None:
		return
	try:
		proc.kill()
	except ProcessLookupError:
		return
	try:
		await asyncio.wait_for(proc.wait(), timeout=_KILL_WAIT_TIMEOUT)
	except asyncio.TimeoutError:
		_log.warning("EXEC_KILL_STUCK pid=%s", proc.pid)


class SubprocessRunner:
	"""Runs commands with ``asyncio.create_subprocess_exec`` (never a shell).

	Cancelling the awaiting task kills the child process before the
	cancellation propagates.
	"""

	def __init__(self, timeout: float = COMMAND_TIMEOUT):
		self.timeout = timeout

	async def run(self, *argv: str, stdin: Optional[str] = None) -> str:
		if not argv:
			raise ValueError("No command arguments provided")
		_log.debug("EXEC %s", " ".join(argv))
		try:
			proc = await asyncio.create_subprocess_exec(
				*argv,
				stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
				stdout=asyncio.subprocess.PIPE,
				stderr=asyncio.subprocess.STDOUT,
			)
		except OSError as exc:
			raise CommandError(argv, None, "", str(exc)) from exc

		payload = stdin.encode("utf-8") if stdin is not None else None
		try:
			out_bytes, _ = await asyncio.wait_for(proc.communicate(payload), timeout=self.timeout)
		except asyncio.TimeoutError:
			await _kill(proc)
			raise CommandError(argv, None, "", f"timed out after {self.timeout:g}s") from None
		except asyncio.CancelledError:
			await _kill(proc)
			raise

		output = (out_bytes or b"").decode("utf-8", errors="replace").strip()
		if proc.returncode != 0:
			raise CommandError(argv, proc.returncode, output)
		return output
