"""In-process food classifier backed by an ONNX model and a label table."""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import numpy as np

from ..errors import (
    ClassifierLoadError,
    ClassifierNotReadyError,
    ClassifyError,
    InvalidFrameError,
)
from ..models import ClassificationResult, Prediction

logger = logging.getLogger(__name__)

DEFAULT_INPUT_SIZE = 224
MAX_TOP_K = 10


class ClassifierState(Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ClassifierAdapter:
    """Load a pre-trained image classifier once and classify frames locally.

    ``load()`` moves the adapter from UNLOADED through LOADING to READY or
    FAILED. It runs at most once; concurrent callers share the same load.
    ``classify()`` never triggers a load and fails fast until READY.

    Pixels are normalized as ``(x * scale - mean) / std``; the defaults map
    uint8 input to ``[-1, 1]`` as MobileNet expects.
    """

    def __init__(
        self,
        model_path: str | Path,
        labels_path: str | Path,
        scale: float = 1 / 127.5,
        mean: float = 1.0,
        std: float = 1.0,
    ) -> None:
        self._model_path = Path(model_path)
        self._labels_path = Path(labels_path)
        self._scale = scale
        self._mean = mean
        self._std = std

        self._state = ClassifierState.UNLOADED
        self._load_task: asyncio.Future[None] | None = None
        self._load_error: str = ""

        self._session: Any = None
        self._input_name = ""
        self._output_name = ""
        self._input_h = DEFAULT_INPUT_SIZE
        self._input_w = DEFAULT_INPUT_SIZE
        self._channels_first = True
        self._labels: Mapping[int, str] = MappingProxyType({})

    @property
    def state(self) -> ClassifierState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is ClassifierState.READY

    @property
    def labels(self) -> Mapping[int, str]:
        """Read-only index -> label table, empty until loaded."""
        return self._labels

    @property
    def input_size(self) -> tuple[int, int]:
        """(width, height) the model expects."""
        return self._input_w, self._input_h

    async def load(self) -> None:
        """Load the model and label table if that has not happened yet.

        Raises:
            ClassifierLoadError: the model or label table could not be loaded
                (also on every later call once FAILED).
        """
        if self._state is ClassifierState.READY:
            return
        if self._state is ClassifierState.FAILED:
            raise ClassifierLoadError(self._load_error)
        if self._load_task is None:
            self._state = ClassifierState.LOADING
            self._load_task = asyncio.ensure_future(self._load())
        # A cancelled waiter must not abort the shared load.
        await asyncio.shield(self._load_task)

    async def _load(self) -> None:
        logger.info("Loading classifier from %s", self._model_path)
        try:
            session, labels = await asyncio.to_thread(self._load_blocking)
            inp = session.get_inputs()[0]
            output_name = session.get_outputs()[0].name
            self._configure_geometry(list(inp.shape))
        except Exception as e:
            self._state = ClassifierState.FAILED
            self._load_error = f"Failed to load classifier: {e}"
            logger.error("%s", self._load_error)
            raise ClassifierLoadError(self._load_error) from e

        self._session = session
        self._input_name = inp.name
        self._output_name = output_name
        self._labels = MappingProxyType(labels)
        self._state = ClassifierState.READY
        logger.info(
            "Classifier ready: %d labels, input %sx%s",
            len(labels),
            self._input_w,
            self._input_h,
        )

    def _load_blocking(self) -> tuple[Any, dict[int, str]]:
        try:
            import onnxruntime as ort
        except ImportError:
            raise ImportError(
                "onnxruntime is required: pip install onnxruntime"
            ) from None

        if not self._model_path.exists():
            raise FileNotFoundError(f"model not found at {self._model_path}")
        labels = load_label_table(self._labels_path)
        session = ort.InferenceSession(
            str(self._model_path), providers=["CPUExecutionProvider"]
        )
        return session, labels

    def _configure_geometry(self, shape: list[Any]) -> None:
        # Typical shapes: [1, 3, H, W] or [None, H, W, 3]; dims may be symbolic.
        if len(shape) != 4:
            return
        if shape[1] == 3 or shape[1] == 1:
            self._channels_first = True
            self._input_h = _dim(shape[2])
            self._input_w = _dim(shape[3])
        else:
            self._channels_first = False
            self._input_h = _dim(shape[1])
            self._input_w = _dim(shape[2])

    def label_for(self, index: int) -> str:
        """Human-readable label, or a placeholder naming the index."""
        return self._labels.get(index, f"Unknown ({index})")

    async def classify(
        self, frame: np.ndarray | bytes, top_k: int = 3
    ) -> ClassificationResult:
        """Rank the ``top_k`` most probable labels for one frame.

        Raises:
            ClassifierNotReadyError: the model is not loaded.
            InvalidFrameError: the frame is empty or cannot be decoded.
            ClassifyError: bad ``top_k``, inference failed, or the model
                returned no usable predictions.
        """
        if self._state is not ClassifierState.READY:
            reason = self._load_error or f"model is {self._state.value}"
            raise ClassifierNotReadyError(f"Classifier not ready: {reason}")
        if not 1 <= top_k <= MAX_TOP_K:
            raise ClassifyError(f"top_k must be between 1 and {MAX_TOP_K}")

        return await asyncio.to_thread(self._classify_blocking, frame, top_k)

    def _classify_blocking(
        self, frame: np.ndarray | bytes, top_k: int
    ) -> ClassificationResult:
        image = tensor = scores = None
        try:
            image = self._decode(frame)
            tensor = self._preprocess(image)
            outputs = self._session.run(
                [self._output_name], {self._input_name: tensor}
            )
            scores = np.asarray(outputs[0], dtype=np.float32).reshape(-1)
            if scores.size == 0:
                raise ClassifyError("No predictions returned from model")
            if not np.isfinite(scores).all():
                raise ClassifyError("Model returned non-finite scores")

            probs = _to_probabilities(scores)
            top = np.argsort(-probs, kind="stable")[:top_k]
            return ClassificationResult(
                predictions=tuple(
                    Prediction(
                        label=self.label_for(int(i)),
                        probability=float(probs[i]),
                    )
                    for i in top
                )
            )
        except ClassifyError:
            raise
        except Exception as e:
            # onnxruntime and OpenCV report bad input as their own errors.
            raise ClassifyError(f"Classification failed: {e}") from e
        finally:
            # Drop the large intermediates now rather than at the next GC pass.
            del image, tensor, scores

    def _decode(self, frame: np.ndarray | bytes) -> np.ndarray:
        import cv2

        if isinstance(frame, (bytes, bytearray)):
            if not frame:
                raise InvalidFrameError("Empty frame")
            decoded = cv2.imdecode(
                np.frombuffer(frame, dtype=np.uint8), cv2.IMREAD_COLOR
            )
            if decoded is None:
                raise InvalidFrameError("Frame could not be decoded as an image")
            return decoded

        if not isinstance(frame, np.ndarray):
            raise InvalidFrameError(f"Unsupported frame type: {type(frame).__name__}")
        if frame.size == 0:
            raise InvalidFrameError("Empty frame")
        if frame.ndim == 2:
            return cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        if frame.ndim == 3 and frame.shape[2] == 4:
            return cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
        if frame.ndim == 3 and frame.shape[2] == 3:
            return frame
        raise InvalidFrameError(f"Unsupported frame shape: {frame.shape}")

    def _preprocess(self, image: np.ndarray) -> np.ndarray:
        import cv2

        resized = cv2.resize(image, (self._input_w, self._input_h))
        rgb = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)
        tensor = (rgb.astype(np.float32) * self._scale - self._mean) / self._std
        if self._channels_first:
            tensor = tensor.transpose(2, 0, 1)
        return np.ascontiguousarray(tensor[None], dtype=np.float32)


def load_label_table(path: str | Path) -> dict[int, str]:
    """Read a label table and return it as index -> label.

    Accepts ``{"label": index}`` (inverted here) as well as the already
    inverted ``{"index": "label"}`` form.
    """
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"label table {path} must be a JSON object")

    table: dict[int, str] = {}
    for key, value in raw.items():
        if isinstance(value, int) and not isinstance(value, bool):
            table[value] = key
        elif isinstance(value, str) and key.isdigit():
            table[int(key)] = value
        else:
            raise ValueError(f"bad label table entry {key!r}: {value!r}")
    return table


def _dim(value: Any) -> int:
    if isinstance(value, int) and value > 0:
        return value
    return DEFAULT_INPUT_SIZE


def _to_probabilities(scores: np.ndarray) -> np.ndarray:
    """Softmax logits; pass through outputs that already sum to one."""
    if (
        scores.min() >= 0.0
        and scores.max() <= 1.0
        and np.isclose(scores.sum(), 1.0, atol=1e-3)
    ):
        return scores
    shifted = np.exp(scores - scores.max())
    return shifted / shifted.sum()
