"""Capture view coordination: camera lifecycle, frame freeze and dispatch."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

from .camera import Camera, CapturedFrame
from .cancellation import CancellationToken
from .errors import CaptureBlockedError, DeviceError, SnapbiteError
from .models import Failure
from .vision import AnalysisPath, PathResult

logger = logging.getLogger(__name__)


class ViewState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    LIVE = "live"
    ANALYZING = "analyzing"
    RESULT = "result"
    ERROR = "error"
    CLOSED = "closed"


class CaptureOrchestrator:
    """Owns the camera for one capture view and runs one analysis at a time.

    Usage:
        async with CaptureOrchestrator(Camera(0), path) as view:
            await view.wait_ready()
            result = await view.capture()

    The camera is acquired while the analysis path warms up, so the live view
    can appear before the model is ready; ``can_capture`` stays False until it
    is. Closing the view releases the camera immediately and discards any
    result that resolves afterwards.
    """

    def __init__(self, camera: Camera, path: AnalysisPath) -> None:
        self._camera = camera
        self._path = path
        self._state = ViewState.IDLE
        self._token = CancellationToken()
        self._prepare_task: asyncio.Task[None] | None = None
        self._analysis_task: asyncio.Task[PathResult] | None = None
        self._result: PathResult | None = None
        self._last_frame: CapturedFrame | None = None
        self._error = ""
        self._path_error = ""

    async def __aenter__(self) -> CaptureOrchestrator:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def path(self) -> AnalysisPath:
        return self._path

    @property
    def result(self) -> PathResult | None:
        return self._result

    @property
    def last_frame(self) -> CapturedFrame | None:
        return self._last_frame

    @property
    def error(self) -> str:
        """Camera error shown instead of the live view."""
        return self._error

    @property
    def path_error(self) -> str:
        """Why the analysis path could not be prepared, if it failed."""
        return self._path_error

    @property
    def can_capture(self) -> bool:
        return self._state is ViewState.LIVE and self._path.is_ready

    def _set_state(self, state: ViewState) -> None:
        logger.debug("View state %s -> %s", self._state.value, state.value)
        self._state = state

    async def start(self) -> None:
        """Acquire the camera and start preparing the analysis path."""
        if self._state is not ViewState.IDLE:
            return
        token = self._token
        self._set_state(ViewState.STARTING)
        self._prepare_task = asyncio.create_task(self._prepare_path(token))

        open_task = asyncio.ensure_future(asyncio.to_thread(self._camera.open))
        try:
            await asyncio.shield(open_task)
        except asyncio.CancelledError:
            # The worker thread cannot be interrupted; tear down once open()
            # has returned so the device is not left acquired.
            await asyncio.wait([open_task])
            if not open_task.cancelled() and open_task.exception() is not None:
                logger.debug(
                    "Camera open failed after cancel: %s", open_task.exception()
                )
            await self.close()
            raise
        except (DeviceError, ImportError) as e:
            if token.cancelled:
                return
            logger.warning("Camera error: %s", e)
            self._error = str(e)
            self._set_state(ViewState.ERROR)
            return

        if token.cancelled:
            # Closed while the device was opening.
            self._camera.release()
            return
        self._set_state(ViewState.LIVE)

    async def _prepare_path(self, token: CancellationToken) -> None:
        try:
            await self._path.prepare()
        except SnapbiteError as e:
            if not token.cancelled:
                logger.warning(
                    "Analysis path %s unavailable: %s", self._path.name, e
                )
                self._path_error = str(e)
        except Exception as e:
            if not token.cancelled:
                logger.exception(
                    "Unexpected error preparing analysis path %s", self._path.name
                )
                self._path_error = f"Unexpected error: {e}"

    async def wait_ready(self) -> bool:
        """Wait for the analysis path to finish preparing; True if ready."""
        if self._prepare_task is not None:
            await asyncio.shield(self._prepare_task)
        return self._path.is_ready

    async def capture(self) -> PathResult | None:
        """Freeze one frame and analyze it.

        Returns the result, or None if the view was closed before it arrived.

        Raises:
            CaptureBlockedError: not live, already analyzing, or the path is
                not ready.
        """
        if self._state is ViewState.ANALYZING:
            raise CaptureBlockedError("An analysis is already in progress.")
        if self._state is not ViewState.LIVE:
            raise CaptureBlockedError(
                f"Cannot capture while the view is {self._state.value}."
            )
        if not self._path.is_ready:
            reason = self._path_error or "the model is still loading"
            raise CaptureBlockedError(f"Analysis is not ready: {reason}.")

        token = self._token
        self._set_state(ViewState.ANALYZING)
        try:
            frame = await asyncio.to_thread(self._camera.read_frame)
        except DeviceError as e:
            if token.cancelled:
                return None
            return self._finish(Failure(error=str(e)))
        if token.cancelled:
            return None

        self._last_frame = frame
        self._analysis_task = asyncio.create_task(
            self._path.analyze(frame, token)
        )
        try:
            result = await self._analysis_task
        except asyncio.CancelledError:
            if token.cancelled:
                return None
            raise
        except Exception:
            self._set_state(ViewState.LIVE)
            raise
        finally:
            self._analysis_task = None

        if token.cancelled:
            logger.debug("Discarding result that arrived after close")
            return None
        return self._finish(result)

    def _finish(self, result: PathResult) -> PathResult:
        self._result = result
        self._set_state(ViewState.RESULT)
        return result

    def retry(self) -> None:
        """Discard the current result and go back to the live view.

        The camera stays acquired.
        """
        if self._state is not ViewState.RESULT:
            raise CaptureBlockedError("There is no result to discard.")
        self._result = None
        self._last_frame = None
        self._set_state(ViewState.LIVE)

    async def close(self) -> None:
        """Tear the view down: release the camera and abandon pending work."""
        if self._state is ViewState.CLOSED:
            return
        self._token.cancel()
        try:
            self._camera.release()
        finally:
            pending = [
                t
                for t in (self._analysis_task, self._prepare_task)
                if t is not None and not t.done()
            ]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            await self._path.aclose()
            self._set_state(ViewState.CLOSED)
