import asyncio
import time
from pathlib import Path

import httpx
import pytest

from newsreel.errors import FootageSearchUnavailable
from newsreel.models.script import SceneModel, TopicContext
from newsreel.nodes.stock_footage import (
    StockFootageSource,
    build_search_query,
    pick_rendition,
    rank_candidates,
    score_candidate,
)
from newsreel.tools.pexels import PexelsClient, PexelsVideo, PexelsVideoFile, RateLimiter

from conftest import FakeFootageSearch, make_video


def _scenes(n: int) -> list[SceneModel]:
    return [
        SceneModel(scene_number=i, narration=f"n{i}", visual_description=f"scene {i} description", duration=5)
        for i in range(1, n + 1)
    ]


class TestBuildSearchQuery:
    def test_priority_keywords_win_over_generic_words(self):
        query = build_search_query("Engineers working with a quantum computer in a bright office")
        assert query.split()[:2] == ["quantum", "computer"]
        assert "working" not in query

    def test_topic_prefix_comes_first(self):
        ctx = TopicContext(topic="Technology", sub_topic="AI Chips")
        query = build_search_query("a processor on a circuit board", ctx)
        assert query == "ai chips processor circuit board"

    def test_falls_back_to_topic_when_no_words(self):
        ctx = TopicContext(topic="Space")
        assert build_search_query("a the", ctx) == "space"

    def test_falls_back_to_description_prefix(self):
        assert build_search_query("an of") == "an of"

    def test_query_is_capped_at_five_words(self):
        ctx = TopicContext(topic="global climate policy summit talks")
        query = build_search_query("forest wilderness mountain landscape", ctx)
        assert len(query.split()) == 5


class TestRanking:
    def test_score_prefers_hd_and_moderate_length(self):
        assert score_candidate(make_video(1, duration=10, width=1920)) == 4
        assert score_candidate(make_video(2, duration=60, width=1920)) == 3
        assert score_candidate(make_video(3, duration=3, width=960)) == 2

    def test_ties_keep_first_encountered(self):
        first, second = make_video(1), make_video(2)
        assert rank_candidates([first, second]).id == 1
        assert rank_candidates([second, first]).id == 2

    def test_higher_score_beats_earlier_candidate(self):
        weak, strong = make_video(1, duration=60, width=640), make_video(2)
        assert rank_candidates([weak, strong]).id == 2

    def test_empty_candidates(self):
        assert rank_candidates([]) is None


class TestPickRendition:
    def test_prefers_hd_widths(self):
        rendition = pick_rendition(make_video(7, width=1280))
        assert rendition.width == 1280

    def test_falls_back_to_first_file(self):
        video = PexelsVideo(
            id=1,
            video_files=[
                PexelsVideoFile(width=640, link="https://videos.test/a.mp4"),
                PexelsVideoFile(width=3840, link="https://videos.test/b.mp4"),
            ],
        )
        assert pick_rendition(video).link == "https://videos.test/a.mp4"

    def test_no_files(self):
        assert pick_rendition(PexelsVideo(id=1)) is None


class TestStockFootageSource:
    async def test_all_scenes_downloaded_in_scene_order(self, tmp_path):
        source = StockFootageSource(FakeFootageSearch(), max_parallel=2)

        clips = await source.fetch_clips(list(reversed(_scenes(3))), None, tmp_path)

        assert [c.scene_number for c in clips] == [1, 2, 3]
        assert all(Path(c.path).is_file() for c in clips)
        assert all(Path(c.path).name.startswith(f"pexels_scene_{c.scene_number}_") for c in clips)

    async def test_failed_download_is_left_out(self, tmp_path):
        # FakeFootageSearch hands out video ids 1, 2, 3 in query order
        search = FakeFootageSearch(fail_urls=("/2/",))
        source = StockFootageSource(search, max_parallel=1)

        clips = await source.fetch_clips(_scenes(3), None, tmp_path)

        assert [c.scene_number for c in clips] == [1, 3]

    async def test_no_results_is_a_partial_failure(self, tmp_path):
        source = StockFootageSource(FakeFootageSearch(videos=[]))

        assert await source.fetch_clips(_scenes(2), None, tmp_path) == []

    async def test_missing_api_key_propagates(self, tmp_path):
        source = StockFootageSource(PexelsClient(api_key=""))

        with pytest.raises(FootageSearchUnavailable):
            await source.fetch_clips(_scenes(1), None, tmp_path)

    async def test_malformed_search_response_is_absorbed(self, tmp_path):
        search = _mock_client(lambda request: httpx.Response(200, text="<html>rate limited</html>"))

        assert await StockFootageSource(search).fetch_clips(_scenes(2), None, tmp_path) == []

    async def test_invalid_search_payload_is_absorbed(self, tmp_path):
        search = _mock_client(lambda request: httpx.Response(200, json={"videos": [{"id": "not-a-number"}]}))

        assert await StockFootageSource(search).fetch_clips(_scenes(2), None, tmp_path) == []

    async def test_fatal_error_cancels_other_downloads(self, tmp_path):
        class SlowSearch(FakeFootageSearch):
            async def search(self, query, per_page=15):
                if len(self.queries) == 0:
                    self.queries.append(query)
                    raise FootageSearchUnavailable("key revoked")
                return await super().search(query, per_page)

            async def download(self, url, output_path):
                await asyncio.sleep(0.2)
                return await super().download(url, output_path)

        source = StockFootageSource(SlowSearch(), max_parallel=3)

        with pytest.raises(FootageSearchUnavailable):
            await source.fetch_clips(_scenes(3), None, tmp_path / "videos")
        await asyncio.sleep(0.4)

        assert list((tmp_path / "videos").iterdir()) == []


# ---------------------------------------------------------------------------
# Pexels client
# ---------------------------------------------------------------------------


def _mock_client(handler, api_key: str = "test-key") -> PexelsClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PexelsClient(api_key=api_key, limiter=RateLimiter(0), http=http)


SEARCH_PAYLOAD = {
    "page": 1,
    "per_page": 15,
    "total_results": 1,
    "videos": [
        {
            "id": 42,
            "duration": 12,
            "video_files": [{"id": 1, "width": 1920, "link": "https://videos.test/42/hd.mp4"}],
        }
    ],
}


async def test_rate_limiter_spaces_concurrent_calls():
    limiter = RateLimiter(0.05)
    stamps: list[float] = []

    async def call():
        await limiter.wait()
        stamps.append(time.monotonic())

    await asyncio.gather(*[call() for _ in range(4)])

    gaps = [b - a for a, b in zip(stamps, stamps[1:])]
    assert len(gaps) == 3
    assert all(gap >= 0.045 for gap in gaps)


async def test_search_sends_landscape_query_with_api_key():
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=SEARCH_PAYLOAD)

    videos = await _mock_client(handler).search("space rocket", per_page=15)

    assert [v.id for v in videos] == [42]
    params = seen[0].url.params
    assert params["query"] == "space rocket"
    assert params["orientation"] == "landscape"
    assert params["per_page"] == "15"
    assert seen[0].headers["Authorization"] == "test-key"


async def test_search_http_error_propagates():
    client = _mock_client(lambda request: httpx.Response(429, text="slow down"))

    with pytest.raises(httpx.HTTPStatusError):
        await client.search("space")


async def test_download_writes_file(tmp_path):
    client = _mock_client(lambda request: httpx.Response(200, content=b"mp4-bytes"))

    path = await client.download("https://videos.test/1.mp4", tmp_path / "clips" / "a.mp4")

    assert path.read_bytes() == b"mp4-bytes"


async def test_failed_download_leaves_no_file(tmp_path):
    client = _mock_client(lambda request: httpx.Response(404))

    with pytest.raises(httpx.HTTPStatusError):
        await client.download("https://videos.test/1.mp4", tmp_path / "a.mp4")

    assert not (tmp_path / "a.mp4").exists()


async def test_empty_download_is_removed(tmp_path):
    client = _mock_client(lambda request: httpx.Response(200, content=b""))

    with pytest.raises(RuntimeError):
        await client.download("https://videos.test/1.mp4", tmp_path / "a.mp4")

    assert not (tmp_path / "a.mp4").exists()
