import io
import time

import pytest
from PIL import Image


def make_image(size=(800, 600), mode="RGB", color=(200, 40, 40), fmt="PNG") -> bytes:
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_half_transparent_png(size=(40, 20)) -> bytes:
    """Left half opaque blue, right half fully transparent."""
    img = Image.new("RGBA", size, (0, 0, 0, 0))
    img.paste((0, 0, 255, 255), (0, 0, size[0] // 2, size[1]))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class StubWorker:
    """Records Convert messages; tests push events back by hand."""

    def __init__(self):
        self.posted = []
        self.events = []
        self.closed = False

    def post(self, message):
        self.posted.append(message)

    def get_event(self, timeout=None):
        if self.events:
            return self.events.pop(0)
        if timeout:
            time.sleep(min(timeout, 0.01))
        return None

    def shutdown(self, wait=True):
        self.closed = True


@pytest.fixture
def png_bytes():
    return make_image()


@pytest.fixture
def stub_worker():
    return StubWorker()
