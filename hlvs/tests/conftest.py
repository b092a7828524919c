import cv2
import numpy as np
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from hlvs.tests.fakes import FakeVideoSource, GeminiStub, RecordingSleep

CLIP_FPS = 4
CLIP_SECONDS = 30
CLIP_WIDTH = 160
CLIP_HEIGHT = 120


@pytest.fixture
def fake_source() -> FakeVideoSource:
    return FakeVideoSource()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
async def gemini_stub():
    stub = GeminiStub()
    app = web.Application()
    app.router.add_post("/v1beta/models/{model_call}", stub.handle)

    server = TestServer(app)
    await server.start_server()
    stub.base_url = str(server.make_url("/v1beta/models"))
    try:
        yield stub
    finally:
        await server.close()


@pytest.fixture
def sample_clip(tmp_path) -> str:
    """30 s MJPG clip at 4 fps; frame i is BGR (200, 2*i, 0)."""
    path = str(tmp_path / "clip.avi")
    writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*"MJPG"), CLIP_FPS, (CLIP_WIDTH, CLIP_HEIGHT))
    assert writer.isOpened(), "OpenCV build cannot write MJPG"
    try:
        for index in range(CLIP_FPS * CLIP_SECONDS):
            frame = np.zeros((CLIP_HEIGHT, CLIP_WIDTH, 3), dtype=np.uint8)
            frame[:, :] = (200, 2 * index, 0)
            writer.write(frame)
    finally:
        writer.release()
    return path
