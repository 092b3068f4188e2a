"""Pytest fixtures: small images generated with Pillow into tmp_path."""

import io
import logging
from pathlib import Path

import pytest
from PIL import Image


def make_image(size=(100, 100), mode='RGB', color=(200, 40, 40)) -> Image.Image:
    image = Image.new(mode, size, color)
    # A gradient gives the encoders something to chew on.
    for x in range(0, size[0], 4):
        for y in range(0, size[1], 4):
            if mode == 'RGBA':
                image.putpixel((x, y), (x % 256, y % 256, 128, 255))
            elif mode == 'RGB':
                image.putpixel((x, y), (x % 256, y % 256, 128))
    return image


def image_bytes(fmt: str, size=(100, 100), mode='RGB') -> bytes:
    buffer = io.BytesIO()
    make_image(size, mode).save(buffer, format=fmt)
    return buffer.getvalue()


def write_image(path: Path, fmt: str, size=(100, 100), mode='RGB') -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(image_bytes(fmt, size, mode))
    return path


@pytest.fixture
def png_file(tmp_path) -> Path:
    return write_image(tmp_path / 'in.png', 'PNG')


@pytest.fixture
def wide_png_file(tmp_path) -> Path:
    return write_image(tmp_path / 'wide.png', 'PNG', size=(200, 100))


@pytest.fixture
def jpeg_file(tmp_path) -> Path:
    return write_image(tmp_path / 'in.jpg', 'JPEG')


@pytest.fixture
def garbage_file(tmp_path) -> Path:
    path = tmp_path / 'notes.txt'
    path.write_bytes(b'this is definitely not an image')
    return path


@pytest.fixture(autouse=True)
def reset_package_logging():
    """Drop handlers configured by the CLI or the plugin between tests."""
    yield
    package_logger = logging.getLogger('imgcompressor')
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
