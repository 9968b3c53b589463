"""Shared test doubles for the encoder, TTS engine, footage search and probe."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from newsreel.errors import CommandFailed
from newsreel.graph.deps import PipelineDeps
from newsreel.graph.progress import ProgressTracker
from newsreel.nodes.assembler import SceneVideoAssembler
from newsreel.nodes.stock_footage import StockFootageSource
from newsreel.nodes.template_images import TemplateCategory, TemplateImageSource
from newsreel.nodes.visuals import VisualSourcing
from newsreel.nodes.voice import VoiceSynthesizer
from newsreel.tools.ffmpeg_locator import ToolLocator
from newsreel.tools.pexels import PexelsVideo, PexelsVideoFile

FAKE_FFMPEG = "/opt/fake/ffmpeg"


class FakeEncoder:
    """Records every call and writes a few bytes to the requested output."""

    def __init__(self, fail_when=None, delay_for=None):
        self.calls: list[tuple[list[str], Path]] = []
        self.fail_when = fail_when or (lambda args, output: False)
        self.delay_for = delay_for or (lambda args, output: 0)

    async def run(self, args, output, *, timeout):
        output = Path(output)
        self.calls.append((list(args), output))
        delay = self.delay_for(args, output)
        if delay:
            await asyncio.sleep(delay)
        if self.fail_when(args, output):
            raise CommandFailed([FAKE_FFMPEG, *args], 1, "simulated encoder failure")
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(b"\x00" * 64)
        return output

    def outputs(self, prefix: str) -> list[Path]:
        return [out for _, out in self.calls if out.name.startswith(prefix)]


class FakeSpeechEngine:
    def __init__(self, fail: bool = False):
        self.calls: list[tuple[str, Path, object]] = []
        self.fail = fail

    async def synthesize(self, text, output_path, profile):
        self.calls.append((text, Path(output_path), profile))
        if self.fail:
            raise RuntimeError("tts engine down")
        Path(output_path).write_bytes(b"ID3fake-mp3")
        return Path(output_path)


def make_video(video_id: int, duration: float = 10, width: int = 1920) -> PexelsVideo:
    return PexelsVideo(
        id=video_id,
        duration=duration,
        video_files=[
            PexelsVideoFile(id=video_id * 10, width=640, link=f"https://videos.test/{video_id}/sd.mp4"),
            PexelsVideoFile(id=video_id * 10 + 1, width=width, link=f"https://videos.test/{video_id}/hd.mp4"),
        ],
    )


class FakeFootageSearch:
    """Returns one candidate per query.

    Downloads fail for URLs containing a *fail_urls* marker, or for the video
    returned to a query containing a *fail_queries* marker.
    """

    def __init__(self, fail_urls: tuple[str, ...] = (), fail_queries: tuple[str, ...] = (), videos=None):
        self.queries: list[str] = []
        self.downloads: list[str] = []
        self.fail_urls = fail_urls
        self.fail_queries = fail_queries
        self.videos = videos
        self._next_id = 0

    async def search(self, query, per_page=15):
        self.queries.append(query)
        if self.videos is not None:
            return list(self.videos)
        self._next_id += 1
        if any(marker in query for marker in self.fail_queries):
            self.fail_urls += (f"/{self._next_id}/",)
        return [make_video(self._next_id)]

    async def download(self, url, output_path):
        self.downloads.append(url)
        if any(marker in url for marker in self.fail_urls):
            raise RuntimeError(f"download failed: {url}")
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_bytes(b"fake-mp4")
        return Path(output_path)


class FakeProbe:
    def __init__(self, duration: float | None = None):
        self.duration = duration
        self.calls: list[tuple[str, float]] = []

    async def measure(self, path, fallback):
        self.calls.append((str(path), fallback))
        return self.duration if self.duration is not None else fallback


def counting_strategy(result, counter: dict, name: str = "strategy"):
    async def strategy():
        counter[name] = counter.get(name, 0) + 1
        return result

    strategy.__name__ = name
    return strategy


@pytest.fixture
def template_dir(tmp_path) -> Path:
    directory = tmp_path / "templates"
    directory.mkdir()
    for category in TemplateCategory:
        (directory / f"{category.value}.jpg").write_bytes(b"\xff\xd8fake-jpeg")
    return directory


@pytest.fixture
def encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def progress() -> ProgressTracker:
    return ProgressTracker("test-run")


@pytest.fixture
def make_deps(tmp_path, template_dir, encoder, probe):
    """Build ``PipelineDeps`` from fakes; override any collaborator by keyword."""

    def _make(
        locator: ToolLocator | None = None,
        engine: FakeSpeechEngine | None = None,
        search: FakeFootageSearch | None = None,
        encoder_: FakeEncoder | None = None,
    ) -> PipelineDeps:
        enc = encoder_ or encoder
        return PipelineDeps(
            locator=locator or ToolLocator((counting_strategy(FAKE_FFMPEG, {}),)),
            voice=VoiceSynthesizer(engine or FakeSpeechEngine(), enc, probe),
            visuals=VisualSourcing(
                StockFootageSource(search or FakeFootageSearch(), max_parallel=3),
                TemplateImageSource(enc, template_dir=template_dir),
            ),
            assembler=SceneVideoAssembler(enc, output_dir=tmp_path / "output", max_parallel=2),
            probe=probe,
        )

    return _make
