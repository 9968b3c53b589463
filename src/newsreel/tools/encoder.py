"""Narrow ffmpeg interface: ``Encoder.run(args, output) -> output``."""

from __future__ import annotations

from pathlib import Path

import structlog

from newsreel.errors import CommandFailed
from newsreel.tools.ffmpeg_locator import ToolLocator, get_ffmpeg_locator
from newsreel.tools.process import remove_paths, run_process

logger = structlog.get_logger()


class Encoder:
    """Runs ffmpeg with a fixed preamble and verifies the produced file."""

    def __init__(self, locator: ToolLocator | None = None):
        self.locator = locator or get_ffmpeg_locator()

    async def run(self, args: list[str], output: Path, *, timeout: float) -> Path:
        """Invoke ffmpeg with *args* writing *output*.

        The output file is removed if the command fails, times out, is
        cancelled, or produces an empty file.

        Raises:
            CommandFailed: ffmpeg failed or produced nothing.
        """
        ffmpeg = await self.locator.resolve()
        output = Path(output)
        argv = [ffmpeg, "-y", "-hide_banner", "-nostats", "-loglevel", "error", *args, str(output)]

        logger.debug("encoder.run", output=output.name, args=" ".join(args)[:300])
        await run_process(argv, timeout=timeout, cleanup=[output])

        if not output.is_file() or output.stat().st_size == 0:
            remove_paths([output])
            raise CommandFailed(argv, 0, f"{output.name} is missing or empty")
        return output
