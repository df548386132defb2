"""Shared fixtures for the watermark tests."""

import pytest
import yaml
from PIL import Image

from core.datatypes import ImageDimensions, RenderError, TextMetrics, WatermarkSpec
from core.progress import ProgressStore


def make_image(path, size=(200, 100), color=(0, 0, 0)):
    """Writes a solid colour JPEG and returns its path."""
    Image.new("RGB", size, color).save(path, "JPEG", quality=95)
    return path


@pytest.fixture
def source_dir(tmp_path):
    src = tmp_path / "input"
    src.mkdir()
    return src


@pytest.fixture
def destination_dir(tmp_path):
    return tmp_path / "output"


@pytest.fixture
def spec(source_dir, destination_dir):
    """Opaque white text in the middle of the image."""
    return WatermarkSpec(
        text="WM",
        font="40px DejaVuSans",
        base_width=200,
        color="#ffffff",
        transparency=0,
        position=("center",),
        source_directory=str(source_dir),
        destination_directory=str(destination_dir),
    )


@pytest.fixture
def store(tmp_path):
    """Progress store on a fresh log."""
    s = ProgressStore(tmp_path / "logs.json")
    s.load()
    return s


@pytest.fixture
def metrics():
    return TextMetrics(width=40.0, ascent=30.0, descent=8.0)


@pytest.fixture
def write_config(tmp_path, source_dir, destination_dir):
    """Writes a YAML config next to the temp folders; keyword args override `data` fields."""
    def _write(overrides=None, **top_level):
        data = {
            "font": "40px DejaVuSans",
            "base_width": 200,
            "relative_font_size": False,
            "color": "#ffffff",
            "transparency": 0,
            "text": "WM",
            "position": "center",
            "rotation": 0,
            "source_directory": source_dir.name,
            "destination_directory": destination_dir.name,
        }
        data.update(overrides or {})
        cfg = {"data": data, "output": {"format": "JPEG", "quality": 90}}
        cfg.update(top_level)
        path = tmp_path / "watermark_config.yaml"
        path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
        return path
    return _write


class FakeRenderer:
    """Renderer double: fixed image size and metrics, records what it rendered."""

    def __init__(self, fail_on=(), dims=None):
        self.fail_on = set(fail_on)
        self.dims = dims or ImageDimensions(200, 100)
        self.rendered = []

    def probe(self, image_path):
        return self.dims

    def measure(self, text, font):
        return TextMetrics(width=40.0, ascent=30.0, descent=8.0)

    def render(self, source_path, destination_path, spec, placement):
        name = str(source_path).replace("\\", "/").split("/")[-1]
        if name in self.fail_on:
            raise RenderError(f"cannot decode {name}")
        self.rendered.append((name, placement))


@pytest.fixture
def fake_renderer():
    return FakeRenderer()
