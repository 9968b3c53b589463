"""Pipeline error taxonomy.

Every fatal error carries a ``stage`` label so callers can show a specific
remediation ("voice generation failed" vs "video assembly failed").
"""

from __future__ import annotations

STAGE_SYNTHESIS = "synthesis"
STAGE_SOURCING = "sourcing"
STAGE_ASSEMBLY = "assembly"
STAGE_TOOL_MISSING = "tool-missing"


class VideoPipelineError(Exception):
    """Base class for all pipeline failures."""

    stage: str = STAGE_ASSEMBLY

    def __init__(self, message: str, *, stage: str | None = None):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage

    def to_dict(self) -> dict:
        return {"stage": self.stage, "message": self.message, "type": type(self).__name__}


class ToolNotFound(VideoPipelineError):
    stage = STAGE_TOOL_MISSING


class SynthesisFailed(VideoPipelineError):
    stage = STAGE_SYNTHESIS


class SourcingPartialFailure(VideoPipelineError):
    """A single scene could not be sourced. Absorbed by the stock-footage batch."""

    stage = STAGE_SOURCING

    def __init__(self, scene_number: int, message: str):
        super().__init__(f"Scene {scene_number}: {message}")
        self.scene_number = scene_number


class FootageSearchUnavailable(VideoPipelineError):
    stage = STAGE_SOURCING


class UnsupportedVisualMode(VideoPipelineError):
    stage = STAGE_SOURCING


class ImageGenerationFailed(VideoPipelineError):
    stage = STAGE_SOURCING

    def __init__(self, scene_number: int, message: str = ""):
        detail = f": {message}" if message else ""
        super().__init__(f"Failed to generate image for scene {scene_number}{detail}")
        self.scene_number = scene_number


class NoImagesGenerated(VideoPipelineError):
    stage = STAGE_SOURCING


class ClipProcessingFailed(VideoPipelineError):
    stage = STAGE_ASSEMBLY

    def __init__(self, scene_number: int, message: str = ""):
        detail = f": {message}" if message else ""
        super().__init__(f"Failed to process video clip for scene {scene_number}{detail}")
        self.scene_number = scene_number


class AssemblyFailed(VideoPipelineError):
    stage = STAGE_ASSEMBLY


class DurationProbeFailed(VideoPipelineError):
    """Non-fatal: the probe degrades to an estimate."""

    stage = STAGE_ASSEMBLY


# ---------------------------------------------------------------------------
# Process-level errors (wrapped by the stage that owns the command)
# ---------------------------------------------------------------------------


class CommandFailed(Exception):
    def __init__(self, argv: list[str], returncode: int | None, stderr: str = ""):
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr
        tail = stderr.strip().splitlines()[-1:] if stderr.strip() else []
        summary = tail[0] if tail else "no output"
        super().__init__(f"{argv[0]} exited with {returncode}: {summary}")


class CommandTimeout(CommandFailed):
    def __init__(self, argv: list[str], timeout: float):
        self.timeout = timeout
        Exception.__init__(self, f"{argv[0]} timed out after {timeout:.0f}s")
        self.argv = argv
        self.returncode = None
        self.stderr = ""
