"""
Shared builders for synthetic PNG containers.
"""

import struct
import zlib

import pytest

from png_read import PNG_SIGNATURE


def make_chunk(ctype: bytes, payload: bytes, crc: int = None) -> bytes:
    if crc is None:
        crc = zlib.crc32(ctype + payload) & 0xffffffff
    return struct.pack(">I", len(payload)) + ctype + payload + struct.pack(">I", crc)


def make_text_chunk(keyword: str, text: str) -> bytes:
    return make_chunk(b"tEXt", keyword.encode("utf-8") + b"\x00" + text.encode("utf-8"))


IHDR = make_chunk(b"IHDR", struct.pack(">IIBBBBB", 1, 1, 8, 0, 0, 0, 0))
IDAT = make_chunk(b"IDAT", zlib.compress(b"\x00\x00"))
IEND = make_chunk(b"IEND", b"")


def make_png(*chunks: bytes) -> bytes:
    return PNG_SIGNATURE + IHDR + b"".join(chunks) + IDAT + IEND


SAMPLE_PARAMETERS = (
    "a cat\n"
    "Negative prompt: blurry, low quality\n"
    "Steps: 20, Sampler: Euler, Model hash: abc123\n"
)


@pytest.fixture
def sample_png() -> bytes:
    return make_png(make_text_chunk("parameters", SAMPLE_PARAMETERS))


@pytest.fixture
def pillow_png(tmp_path):
    """A real PNG written by Pillow with a tEXt 'parameters' chunk."""
    from PIL import Image
    from PIL.PngImagePlugin import PngInfo

    info = PngInfo()
    info.add_text("parameters", SAMPLE_PARAMETERS)
    info.add_text("Software", "test")
    path = tmp_path / "generated.png"
    Image.new("RGB", (4, 4), (255, 0, 0)).save(path, pnginfo=info)
    return path
