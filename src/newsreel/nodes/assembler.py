"""Scene video assembler — normalizes visuals per scene and muxes them with narration.

Three mutually exclusive modes, chosen by which assets are present:

- clips:  stock clips (plus stills / solid frames for gaps) are normalized
          one by one, then stream-copied through the concat demuxer.
- stills: template images are chained in a single filter graph with fades.
- title:  no visuals at all; a title card is looped under the narration.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from pathlib import Path
from typing import Iterable, Mapping

import structlog
from langchain_core.runnables import RunnableConfig

from newsreel.config import settings
from newsreel.errors import AssemblyFailed, ClipProcessingFailed, VideoPipelineError
from newsreel.graph.context import get_deps, get_progress
from newsreel.graph.state import RenderState
from newsreel.models.media import AudioTrack, StockClip, TemplateImage
from newsreel.models.output import ProgressStage
from newsreel.models.script import SceneModel
from newsreel.tools.encoder import Encoder
from newsreel.tools.process import remove_paths

logger = structlog.get_logger()

Asset = StockClip | TemplateImage


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def scene_duration(scene: SceneModel) -> float:
    """Zero or tiny durations are clamped so trim/fade never sees 0s."""
    return max(float(scene.duration), settings.min_scene_sec)


def fade_duration(duration: float) -> float:
    return min(settings.fade_sec, duration / 2)


def escape_filter_value(value: str) -> str:
    """Escape *value* for a filter option, then for the filter graph."""
    for ch in ("\\", "'", ":"):
        value = value.replace(ch, "\\" + ch)
    escaped = []
    for ch in value:
        if ch in "\\'[],;":
            escaped.append("\\")
        escaped.append(ch)
    return "".join(escaped)


def _quote_manifest_path(path: Path) -> str:
    return "'" + str(path.resolve()).replace("'", "'\\''") + "'"


def write_concat_manifest(processed: Mapping[int, Path], manifest_path: Path) -> list[Path]:
    """Write the concat demuxer list in ascending scene-number order."""
    ordered = [processed[n] for n in sorted(processed)]
    manifest_path.write_text(
        "".join(f"file {_quote_manifest_path(p)}\n" for p in ordered),
        encoding="utf-8",
    )
    return ordered


def _fit_filter(width: int, height: int) -> str:
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,setsar=1"
    )


class SceneVideoAssembler:
    def __init__(
        self,
        encoder: Encoder,
        output_dir: Path | None = None,
        max_parallel: int | None = None,
    ):
        self.encoder = encoder
        self.output_dir = Path(output_dir or settings.output_base_dir)
        self.max_parallel = max_parallel or settings.max_parallel_encodes
        self.width = settings.video_width
        self.height = settings.video_height
        self.fps = settings.video_fps

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def assemble(
        self,
        audio: AudioTrack,
        scenes: list[SceneModel],
        assets: Iterable[Asset],
        title: str,
        work_dir: Path,
    ) -> Path:
        """Encode the final MP4 and return its path.

        Raises:
            ClipProcessingFailed: A scene could not be normalized.
            AssemblyFailed: Any other encoder failure.
        """
        work_dir = Path(work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        scenes = sorted(scenes, key=lambda s: s.scene_number)
        by_scene = {a.scene_number: a for a in assets}
        output = self.output_dir / f"video_{int(time.time())}_{uuid.uuid4().hex[:9]}.mp4"

        has_clips = any(isinstance(a, StockClip) for a in by_scene.values())
        has_stills = any(isinstance(a, TemplateImage) for a in by_scene.values())

        try:
            if scenes and has_clips:
                mode = "clips"
                await self._assemble_clips(audio, scenes, by_scene, work_dir, output)
            elif scenes and has_stills:
                mode = "stills"
                await self._assemble_stills(audio, scenes, by_scene, output)
            else:
                mode = "title"
                await self._assemble_title_card(audio, title, work_dir, output)
        except (VideoPipelineError, asyncio.CancelledError):
            remove_paths([output])
            raise
        except Exception as exc:
            remove_paths([output])
            logger.exception("assembler.failed", output=output.name)
            raise AssemblyFailed(f"Video assembly failed: {exc}") from exc

        logger.info(
            "assembler.done",
            mode=mode,
            output=output.name,
            size_mb=round(output.stat().st_size / (1024 * 1024), 2),
        )
        return output

    def _final_timeout(self, scene_count: int) -> float:
        return settings.assembly_timeout_base_sec + settings.assembly_timeout_per_scene_sec * scene_count

    # ------------------------------------------------------------------
    # Mode: real clips
    # ------------------------------------------------------------------

    async def _assemble_clips(
        self,
        audio: AudioTrack,
        scenes: list[SceneModel],
        by_scene: Mapping[int, Asset],
        work_dir: Path,
        output: Path,
    ) -> None:
        logger.info(
            "assembler.clips.start",
            scene_count=len(scenes),
            clip_count=sum(isinstance(a, StockClip) for a in by_scene.values()),
            durations=[scene_duration(s) for s in scenes],
        )
        semaphore = asyncio.Semaphore(self.max_parallel)

        async def _limited(scene: SceneModel) -> Path:
            async with semaphore:
                return await self.normalize_scene(scene, by_scene.get(scene.scene_number), work_dir)

        tasks = {s.scene_number: asyncio.create_task(_limited(s)) for s in scenes}
        try:
            await asyncio.gather(*tasks.values())
        except BaseException:
            for task in tasks.values():
                task.cancel()
            await asyncio.gather(*tasks.values(), return_exceptions=True)
            raise

        processed = {number: task.result() for number, task in tasks.items()}
        manifest = work_dir / f"concat_{uuid.uuid4().hex[:8]}.txt"
        write_concat_manifest(processed, manifest)

        logger.info("assembler.clips.concat", clip_count=len(processed))
        await self.encoder.run(
            [
                "-f", "concat", "-safe", "0", "-i", str(manifest),
                "-i", audio.path,
                "-map", "0:v:0", "-map", "1:a:0",
                "-c:v", "copy",
                "-c:a", "aac", "-b:a", settings.audio_bitrate,
                "-shortest",
                "-movflags", "+faststart",
            ],
            output,
            timeout=self._final_timeout(len(scenes)),
        )

    async def normalize_scene(self, scene: SceneModel, asset: Asset | None, work_dir: Path) -> Path:
        """Encode one scene to a uniform intermediate (same size, fps, codec).

        Clips are trimmed, stills are looped and gaps become a solid frame,
        so the concat demuxer can stream-copy the results.
        """
        duration = scene_duration(scene)
        out = work_dir / f"processed_{scene.scene_number:04d}_{uuid.uuid4().hex[:8]}.mp4"

        if isinstance(asset, StockClip):
            # Loop clips shorter than the scene so -t can fill it
            loop = ["-stream_loop", "-1"] if 0 < asset.source_duration < duration else []
            inputs = [*loop, "-i", asset.path]
            source = "clip"
        elif isinstance(asset, TemplateImage):
            inputs = ["-loop", "1", "-framerate", str(self.fps), "-i", asset.path]
            source = "image"
        else:
            inputs = [
                "-f", "lavfi",
                "-i", f"color=c={settings.background_color}:size={self.width}x{self.height}:rate={self.fps}",
            ]
            source = "solid"

        logger.info(
            "assembler.scene.start",
            scene_number=scene.scene_number,
            source=source,
            target_duration=duration,
            source_duration=asset.source_duration if isinstance(asset, StockClip) else None,
        )
        try:
            await self.encoder.run(
                [
                    *inputs,
                    "-t", f"{duration:.3f}",
                    "-vf", f"{_fit_filter(self.width, self.height)},fps={self.fps}",
                    "-an",
                    "-c:v", "libx264", "-preset", "ultrafast", "-crf", "23",
                    "-pix_fmt", "yuv420p",
                ],
                out,
                timeout=settings.clip_timeout_sec,
            )
        except VideoPipelineError:
            raise
        except Exception as exc:
            logger.error("assembler.scene.failed", scene_number=scene.scene_number, error=str(exc))
            raise ClipProcessingFailed(scene.scene_number, str(exc)) from exc
        return out

    # ------------------------------------------------------------------
    # Mode: template stills
    # ------------------------------------------------------------------

    def build_stills_filter(self, scenes: list[SceneModel]) -> str:
        fit = _fit_filter(self.width, self.height)
        stages = []
        for index, scene in enumerate(scenes):
            duration = scene_duration(scene)
            fade = fade_duration(duration)
            stages.append(
                f"[{index}:v]{fit},fps={self.fps},"
                f"setpts=PTS-STARTPTS,"
                f"trim=duration={duration:.3f},"
                f"fade=t=in:st=0:d={fade:.3f},"
                f"fade=t=out:st={duration - fade:.3f}:d={fade:.3f}"
                f"[v{index}]"
            )
        labels = "".join(f"[v{i}]" for i in range(len(scenes)))
        return ";".join(stages) + f";{labels}concat=n={len(scenes)}:v=1:a=0[outv]"

    async def _assemble_stills(
        self,
        audio: AudioTrack,
        scenes: list[SceneModel],
        by_scene: Mapping[int, Asset],
        output: Path,
    ) -> None:
        logger.info("assembler.stills.start", scene_count=len(scenes))
        inputs: list[str] = []
        for scene in scenes:
            asset = by_scene.get(scene.scene_number)
            if isinstance(asset, TemplateImage):
                inputs += ["-loop", "1", "-framerate", str(self.fps), "-i", asset.path]
            else:
                inputs += [
                    "-f", "lavfi",
                    "-i", f"color=c={settings.background_color}:size={self.width}x{self.height}:rate={self.fps}",
                ]

        await self.encoder.run(
            [
                *inputs,
                "-i", audio.path,
                "-filter_complex", self.build_stills_filter(scenes),
                "-map", "[outv]", "-map", f"{len(scenes)}:a",
                "-c:v", "libx264", "-preset", "medium", "-crf", "23",
                "-c:a", "aac", "-b:a", settings.audio_bitrate,
                "-pix_fmt", "yuv420p",
                "-shortest",
                "-movflags", "+faststart",
            ],
            output,
            timeout=self._final_timeout(len(scenes)),
        )

    # ------------------------------------------------------------------
    # Mode: title card
    # ------------------------------------------------------------------

    async def render_title_card(self, title: str, work_dir: Path) -> Path:
        """Render a single background frame, with the title when the font works."""
        card = work_dir / f"bg_{uuid.uuid4().hex[:8]}.png"
        color_src = f"color=c={settings.background_color}:size={self.width}x{self.height}:duration=1"

        if title.strip():
            text_file = work_dir / "title.txt"
            text_file.write_text(title.strip(), encoding="utf-8")
            drawtext = (
                f"drawtext=textfile={escape_filter_value(str(text_file))}"
                f":fontfile={escape_filter_value(settings.title_font)}"
                f":fontcolor=white:fontsize={settings.title_fontsize}"
                f":x=(w-text_w)/2:y=(h-text_h)/2"
            )
            try:
                return await self.encoder.run(
                    ["-f", "lavfi", "-i", color_src, "-vf", drawtext, "-frames:v", "1", "-update", "1"],
                    card,
                    timeout=settings.clip_timeout_sec,
                )
            except VideoPipelineError:
                raise
            except Exception as exc:
                logger.warning("assembler.title_text_failed", error=str(exc))

        return await self.encoder.run(
            ["-f", "lavfi", "-i", color_src, "-frames:v", "1", "-update", "1"],
            card,
            timeout=settings.clip_timeout_sec,
        )

    async def _assemble_title_card(self, audio: AudioTrack, title: str, work_dir: Path, output: Path) -> None:
        logger.info("assembler.title.start", title=title[:60], audio_duration=audio.duration_hint)
        card = await self.render_title_card(title, work_dir)
        await self.encoder.run(
            [
                "-loop", "1", "-i", str(card),
                "-i", audio.path,
                "-map", "0:v:0", "-map", "1:a:0",
                "-c:v", "libx264", "-tune", "stillimage",
                "-c:a", "aac", "-b:a", settings.audio_bitrate,
                "-pix_fmt", "yuv420p",
                "-shortest",
                "-movflags", "+faststart",
            ],
            output,
            timeout=self._final_timeout(1),
        )


# ---------------------------------------------------------------------------
# Node implementation
# ---------------------------------------------------------------------------


async def assemble_video(state: RenderState, config: RunnableConfig) -> dict:
    """Combine narration and scene visuals into the final MP4."""
    assembler = get_deps(config).assembler
    progress = get_progress(config)
    request = state["request"]
    visuals = state.get("visuals") or []
    clips = sum(isinstance(a, StockClip) for a in visuals)

    progress.emit(
        ProgressStage.ASSEMBLY,
        75,
        f"Processing {clips} video clips..." if clips else "Creating multi-scene video...",
    )
    video_path = await assembler.assemble(
        state["audio"],
        request.scenes,
        visuals,
        request.title,
        Path(state["work_dir"]) / "video",
    )
    progress.emit(ProgressStage.ASSEMBLY, 85, "Video processing complete, finalizing...")
    return {"video_path": str(video_path)}
