import pytest

from newsreel.errors import UnsupportedVisualMode
from newsreel.models.media import StockClip, TemplateImage
from newsreel.models.script import SceneModel, VideoRequest, VisualMode
from newsreel.nodes.stock_footage import StockFootageSource
from newsreel.nodes.template_images import TemplateImageSource
from newsreel.nodes.visuals import VisualSourcing
from newsreel.tools.pexels import PexelsClient

from conftest import FakeEncoder, FakeFootageSearch


def _request(mode: VisualMode, n: int = 3) -> VideoRequest:
    return VideoRequest(
        title="Test",
        visual_mode=mode,
        scenes=[
            SceneModel(scene_number=i, narration=f"n{i}", visual_description="forest trail", duration=5)
            for i in range(1, n + 1)
        ],
    )


def _sourcing(search, template_dir) -> VisualSourcing:
    return VisualSourcing(
        StockFootageSource(search, max_parallel=1),
        TemplateImageSource(FakeEncoder(), template_dir=template_dir),
    )


async def test_stock_mode_returns_clips(tmp_path, template_dir):
    assets = await _sourcing(FakeFootageSearch(), template_dir).source(_request(VisualMode.STOCK_FOOTAGE), tmp_path)

    assert [type(a) for a in assets] == [StockClip] * 3
    assert [a.scene_number for a in assets] == [1, 2, 3]


async def test_missing_scene_is_substituted_with_template(tmp_path, template_dir):
    search = FakeFootageSearch(fail_urls=("/2/",))

    assets = await _sourcing(search, template_dir).source(_request(VisualMode.STOCK_FOOTAGE), tmp_path)

    assert [a.scene_number for a in assets] == [1, 2, 3]
    assert isinstance(assets[1], TemplateImage)
    assert isinstance(assets[0], StockClip) and isinstance(assets[2], StockClip)


async def test_no_api_key_falls_back_to_templates(tmp_path, template_dir):
    assets = await _sourcing(PexelsClient(api_key=""), template_dir).source(
        _request(VisualMode.STOCK_FOOTAGE), tmp_path
    )

    assert [type(a) for a in assets] == [TemplateImage] * 3


async def test_fallback_without_templates_leaves_no_visuals(tmp_path):
    empty = tmp_path / "no-templates"
    empty.mkdir()

    assets = await _sourcing(FakeFootageSearch(videos=[]), empty).source(_request(VisualMode.STOCK_FOOTAGE), tmp_path)

    assert assets == []


async def test_generative_mode_is_rejected(tmp_path, template_dir):
    with pytest.raises(UnsupportedVisualMode):
        await _sourcing(FakeFootageSearch(), template_dir).source(_request(VisualMode.GENERATIVE_VIDEO), tmp_path)
