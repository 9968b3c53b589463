"""Async subprocess runner with timeouts, cancellation and bounded output."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import structlog

from newsreel.config import settings
from newsreel.errors import CommandFailed, CommandTimeout

logger = structlog.get_logger()

_READ_CHUNK = 8192


@dataclass
class ProcessResult:
    returncode: int
    stdout: str
    stderr: str


async def _drain(stream: asyncio.StreamReader | None, limit: int) -> bytes:
    """Read *stream* to EOF keeping only the last *limit* bytes."""
    if stream is None:
        return b""
    buf = bytearray()
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > limit:
            del buf[: len(buf) - limit]
    return bytes(buf)


def remove_paths(paths: Iterable[Path | str]) -> None:
    """Best-effort removal of partial files."""
    for p in paths:
        with contextlib.suppress(FileNotFoundError):
            Path(p).unlink()


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()


async def run_process(
    argv: list[str],
    *,
    timeout: float,
    output_limit: int | None = None,
    cleanup: Iterable[Path | str] = (),
    check: bool = True,
) -> ProcessResult:
    """Run *argv* and wait for it, killing it after *timeout* seconds.

    On timeout, cancellation or (with *check*) a non-zero exit, the files in
    *cleanup* are removed before the error propagates.

    Raises:
        CommandTimeout: The process exceeded *timeout*.
        CommandFailed: The binary is missing or exited non-zero.
    """
    limit = output_limit or settings.command_output_limit
    cleanup = list(cleanup)

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        remove_paths(cleanup)
        raise CommandFailed(argv, None, str(exc)) from exc

    async def _communicate() -> tuple[bytes, bytes]:
        out, err = await asyncio.gather(_drain(proc.stdout, limit), _drain(proc.stderr, limit))
        await proc.wait()
        return out, err

    try:
        stdout, stderr = await asyncio.wait_for(_communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(proc)
        remove_paths(cleanup)
        logger.warning("process.timeout", cmd=argv[0], timeout=timeout)
        raise CommandTimeout(argv, timeout) from None
    except asyncio.CancelledError:
        await _kill(proc)
        remove_paths(cleanup)
        logger.info("process.cancelled", cmd=argv[0])
        raise

    result = ProcessResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
    if check and result.returncode != 0:
        remove_paths(cleanup)
        raise CommandFailed(argv, result.returncode, result.stderr)
    return result
