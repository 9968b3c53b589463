import pytest

from newsreel.errors import ImageGenerationFailed, NoImagesGenerated
from newsreel.models.script import SceneModel
from newsreel.nodes.template_images import TemplateCategory, TemplateImageSource, classify, template_path

from conftest import FakeEncoder


@pytest.mark.parametrize(
    "description, expected",
    [
        ("Troops on parade", TemplateCategory.MILITARY),
        ("A quantum lab", TemplateCategory.TECHNOLOGY),
        ("Wildlife crossing a river", TemplateCategory.NATURE),
        ("Congress in session", TemplateCategory.GOVERNMENT),
        ("Research team at work", TemplateCategory.SCIENCE),
        ("A sunny beach", TemplateCategory.GENERIC),
    ],
)
def test_classify(description, expected):
    assert classify(description) is expected


def test_classify_first_category_wins():
    # "defense" (military) is checked before "research" (science)
    assert classify("defense research budget") is TemplateCategory.MILITARY


def test_classify_matches_substrings():
    assert classify("new software release") is TemplateCategory.MILITARY


def test_template_path(tmp_path):
    assert template_path(TemplateCategory.NATURE, tmp_path) == tmp_path / "nature.jpg"


async def test_select_images_scales_each_scene(tmp_path, template_dir):
    encoder = FakeEncoder()
    source = TemplateImageSource(encoder, template_dir=template_dir)
    scenes = [
        SceneModel(scene_number=1, visual_description="forest", duration=3),
        SceneModel(scene_number=2, visual_description="senate hearing on politics", duration=3),
    ]

    images = await source.select_images(scenes, tmp_path / "images")

    assert [i.scene_number for i in images] == [1, 2]
    inputs = [args[args.index("-i") + 1] for args, _ in encoder.calls]
    assert inputs == [str(template_dir / "nature.jpg"), str(template_dir / "government.jpg")]


async def test_missing_template_names_the_scene(tmp_path, template_dir):
    (template_dir / "science.jpg").unlink()
    source = TemplateImageSource(FakeEncoder(), template_dir=template_dir)
    scenes = [
        SceneModel(scene_number=1, visual_description="forest", duration=3),
        SceneModel(scene_number=2, visual_description="laboratory", duration=3),
    ]

    with pytest.raises(ImageGenerationFailed) as excinfo:
        await source.select_images(scenes, tmp_path / "images")

    assert excinfo.value.scene_number == 2


async def test_encoder_failure_is_wrapped(tmp_path, template_dir):
    source = TemplateImageSource(FakeEncoder(fail_when=lambda a, o: True), template_dir=template_dir)
    scenes = [SceneModel(scene_number=4, visual_description="forest", duration=3)]

    with pytest.raises(ImageGenerationFailed) as excinfo:
        await source.select_images(scenes, tmp_path)

    assert excinfo.value.scene_number == 4


async def test_no_scenes_raises(tmp_path, template_dir):
    source = TemplateImageSource(FakeEncoder(), template_dir=template_dir)

    with pytest.raises(NoImagesGenerated):
        await source.select_images([], tmp_path)
