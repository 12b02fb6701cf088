"""Tests for the capture view orchestrator (fake camera and analysis path)."""

import asyncio
import time
from unittest.mock import MagicMock

import numpy as np
import pytest

from snapbite.camera import Camera, CapturedFrame
from snapbite.errors import CaptureBlockedError, ClassifierLoadError, DeviceError
from snapbite.models import Failure, Success
from snapbite.orchestrator import CaptureOrchestrator, ViewState
from snapbite.vision import AnalysisPath


class FakePath(AnalysisPath):
    name = "fake"

    def __init__(self, result=None, ready=True, prepare_error=None):
        self.result = result or Success(data={}, raw_text="{}")
        self.ready = ready
        self.prepare_error = prepare_error
        self.gate: asyncio.Event | None = None
        self.calls = 0
        self.closed = False

    @property
    def is_ready(self):
        return self.ready

    async def prepare(self):
        if self.prepare_error is not None:
            raise self.prepare_error

    async def analyze(self, frame, token=None):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return self.result

    async def aclose(self):
        self.closed = True


@pytest.fixture
def camera():
    cam = MagicMock(spec=Camera)
    cam.read_frame.return_value = CapturedFrame(
        np.zeros((4, 4, 3), dtype=np.uint8), "2026-01-01T00:00:00+00:00"
    )
    return cam


async def _wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


class TestStart:
    @pytest.mark.asyncio
    async def test_start_goes_live(self, camera):
        view = CaptureOrchestrator(camera, FakePath())
        assert view.state is ViewState.IDLE

        await view.start()
        assert view.state is ViewState.LIVE
        assert view.can_capture
        camera.open.assert_called_once()
        await view.close()

    @pytest.mark.asyncio
    async def test_camera_not_found(self, camera):
        camera.open.side_effect = DeviceError(
            DeviceError.NOT_FOUND, "No camera found on this device."
        )
        async with CaptureOrchestrator(camera, FakePath()) as view:
            assert view.state is ViewState.ERROR
            assert view.error == "No camera found on this device."
            assert not view.can_capture
            with pytest.raises(CaptureBlockedError):
                await view.capture()

    @pytest.mark.asyncio
    async def test_camera_permission_denied(self, camera):
        camera.open.side_effect = DeviceError(
            DeviceError.PERMISSION_DENIED,
            "Camera access denied. Please allow camera permissions.",
        )
        async with CaptureOrchestrator(camera, FakePath()) as view:
            assert view.state is ViewState.ERROR
            assert "denied" in view.error

    @pytest.mark.asyncio
    async def test_path_not_ready_blocks_capture(self, camera):
        path = FakePath(ready=False)
        async with CaptureOrchestrator(camera, path) as view:
            assert view.state is ViewState.LIVE
            assert not view.can_capture
            with pytest.raises(CaptureBlockedError, match="not ready"):
                await view.capture()
            assert view.state is ViewState.LIVE

    @pytest.mark.asyncio
    async def test_path_prepare_failure(self, camera):
        path = FakePath(ready=False, prepare_error=ClassifierLoadError("Failed to load classifier: boom"))
        async with CaptureOrchestrator(camera, path) as view:
            assert await view.wait_ready() is False
            assert "boom" in view.path_error
            # the camera view still works
            assert view.state is ViewState.LIVE

    @pytest.mark.asyncio
    async def test_unexpected_prepare_error(self, camera):
        path = FakePath(ready=False, prepare_error=RuntimeError("boom"))
        async with CaptureOrchestrator(camera, path) as view:
            assert await view.wait_ready() is False
            assert "boom" in view.path_error
            assert view.state is ViewState.LIVE

    @pytest.mark.asyncio
    async def test_cancelled_start_releases_camera(self, camera):
        camera.open.side_effect = lambda: time.sleep(0.3)
        path = FakePath()
        view = CaptureOrchestrator(camera, path)

        async def enter():
            async with view:
                pass

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(enter(), 0.05)

        camera.open.assert_called_once()
        camera.release.assert_called_once()
        assert view.state is ViewState.CLOSED
        assert path.closed


class TestCapture:
    @pytest.mark.asyncio
    async def test_capture_returns_result(self, camera):
        expected = Success(data={}, raw_text="{}")
        path = FakePath(result=expected)
        async with CaptureOrchestrator(camera, path) as view:
            result = await view.capture()

            assert result is expected
            assert view.result is expected
            assert view.state is ViewState.RESULT
            assert view.last_frame is camera.read_frame.return_value
            assert path.calls == 1
            camera.read_frame.assert_called_once()

    @pytest.mark.asyncio
    async def test_failure_result_is_displayed(self, camera):
        path = FakePath(result=Failure(error="Inference backend error: 500 - server error"))
        async with CaptureOrchestrator(camera, path) as view:
            result = await view.capture()
            assert isinstance(result, Failure)
            assert view.state is ViewState.RESULT

    @pytest.mark.asyncio
    async def test_frame_read_failure(self, camera):
        camera.read_frame.side_effect = DeviceError(DeviceError.OTHER, "Could not read a frame")
        path = FakePath()
        async with CaptureOrchestrator(camera, path) as view:
            result = await view.capture()
            assert result == Failure(error="Could not read a frame")
            assert path.calls == 0

    @pytest.mark.asyncio
    async def test_one_analysis_at_a_time(self, camera):
        path = FakePath()
        path.gate = asyncio.Event()
        async with CaptureOrchestrator(camera, path) as view:
            first = asyncio.create_task(view.capture())
            await _wait_until(lambda: path.calls == 1)

            assert view.state is ViewState.ANALYZING
            assert not view.can_capture
            with pytest.raises(CaptureBlockedError, match="already in progress"):
                await view.capture()

            path.gate.set()
            await first
            assert path.calls == 1
            assert view.state is ViewState.RESULT

    @pytest.mark.asyncio
    async def test_capture_after_result_blocked(self, camera):
        async with CaptureOrchestrator(camera, FakePath()) as view:
            await view.capture()
            with pytest.raises(CaptureBlockedError):
                await view.capture()

    @pytest.mark.asyncio
    async def test_retry_keeps_camera(self, camera):
        path = FakePath()
        async with CaptureOrchestrator(camera, path) as view:
            await view.capture()
            view.retry()

            assert view.state is ViewState.LIVE
            assert view.result is None
            assert view.last_frame is None
            camera.release.assert_not_called()

            await view.capture()
            assert path.calls == 2
            camera.open.assert_called_once()

    @pytest.mark.asyncio
    async def test_retry_without_result(self, camera):
        async with CaptureOrchestrator(camera, FakePath()) as view:
            with pytest.raises(CaptureBlockedError):
                view.retry()


class TestClose:
    @pytest.mark.asyncio
    async def test_close_releases_everything(self, camera):
        path = FakePath()
        view = CaptureOrchestrator(camera, path)
        await view.start()
        await view.close()

        assert view.state is ViewState.CLOSED
        camera.release.assert_called_once()
        assert path.closed

        await view.close()
        camera.release.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_during_analysis_discards_result(self, camera):
        path = FakePath()
        path.gate = asyncio.Event()
        view = CaptureOrchestrator(camera, path)
        await view.start()

        pending = asyncio.create_task(view.capture())
        await _wait_until(lambda: path.calls == 1)
        await view.close()

        assert await pending is None
        assert view.result is None
        assert view.state is ViewState.CLOSED
        camera.release.assert_called_once()

    @pytest.mark.asyncio
    async def test_capture_after_close(self, camera):
        view = CaptureOrchestrator(camera, FakePath())
        await view.start()
        await view.close()
        with pytest.raises(CaptureBlockedError):
            await view.capture()

    @pytest.mark.asyncio
    async def test_context_manager_releases_on_error(self, camera):
        with pytest.raises(RuntimeError):
            async with CaptureOrchestrator(camera, FakePath()):
                raise RuntimeError("boom")
        camera.release.assert_called_once()
