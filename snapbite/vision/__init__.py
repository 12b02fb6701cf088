"""Analysis paths: one abstraction over the generative and classifier backends."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Union

import numpy as np

from ..camera import CapturedFrame, encode_jpeg
from ..cancellation import CancellationToken
from ..errors import ClassifyError, GatewayError, ParseError
from ..models import (
    AnalysisOutcome,
    ClassificationResult,
    Failure,
    PartialFailure,
    Success,
)
from .classifier import MAX_TOP_K, ClassifierAdapter
from .ollama import DEFAULT_MODEL, OllamaGateway
from .prompts import PromptStrategy

if TYPE_CHECKING:
    from ..config import SnapbiteConfig

logger = logging.getLogger(__name__)

Frame = Union[CapturedFrame, np.ndarray, bytes]
PathResult = Union[AnalysisOutcome, ClassificationResult]


class AnalysisPath(ABC):
    """Turns one frozen frame into a result for display.

    Implementations never raise for backend failures: those come back as a
    ``Failure`` or ``PartialFailure`` outcome.
    """

    name: str = ""

    @property
    def is_ready(self) -> bool:
        return True

    async def prepare(self) -> None:
        """Warm up whatever the path needs before the first capture."""

    async def aclose(self) -> None:
        """Release resources held by the path."""

    @abstractmethod
    async def analyze(
        self, frame: Frame, token: CancellationToken | None = None
    ) -> PathResult:
        ...


class GenerativePath(AnalysisPath):
    """Gateway + parser: itemized nutrients from a vision-language model."""

    name = "ollama"

    def __init__(
        self,
        gateway: OllamaGateway,
        strategy: PromptStrategy = PromptStrategy.JSON,
        model: str = DEFAULT_MODEL,
        strict: bool = True,
        jpeg_quality: int = 95,
    ) -> None:
        self._gateway = gateway
        self._strategy = strategy
        self._model = model
        self._parse = strategy.parser(strict)
        self._jpeg_quality = jpeg_quality

    async def aclose(self) -> None:
        await self._gateway.aclose()

    async def analyze(
        self, frame: Frame, token: CancellationToken | None = None
    ) -> AnalysisOutcome:
        try:
            image = await asyncio.to_thread(self._to_jpeg, frame)
        except Exception as e:
            # cv2.error and a failed imencode both land here.
            logger.warning("Could not encode frame: %s", e)
            return Failure(error=f"Could not encode frame: {e}")
        if token is not None:
            token.raise_if_cancelled()

        try:
            raw_text = await self._gateway.analyze(
                image,
                self._strategy.prompt,
                self._model,
                json_format=self._strategy.json_format,
            )
        except GatewayError as e:
            logger.warning("Food analysis failed: %s", e)
            return Failure(error=str(e))

        if token is not None:
            token.raise_if_cancelled()

        try:
            data = self._parse(raw_text)
        except ParseError as e:
            logger.warning("Could not parse backend answer: %s", e)
            return PartialFailure(raw_text=e.raw_text, parse_error=str(e))
        return Success(data=data, raw_text=raw_text)

    def _to_jpeg(self, frame: Frame) -> bytes:
        if isinstance(frame, CapturedFrame):
            return frame.encode_jpeg(self._jpeg_quality)
        if isinstance(frame, np.ndarray):
            return encode_jpeg(frame, self._jpeg_quality)
        return bytes(frame)


class ClassifierPath(AnalysisPath):
    """In-process classifier: a ranked list of food labels."""

    name = "classifier"

    def __init__(self, adapter: ClassifierAdapter, top_k: int = 3) -> None:
        self._adapter = adapter
        self._top_k = top_k

    @property
    def adapter(self) -> ClassifierAdapter:
        return self._adapter

    @property
    def is_ready(self) -> bool:
        return self._adapter.is_ready

    async def prepare(self) -> None:
        await self._adapter.load()

    async def analyze(
        self, frame: Frame, token: CancellationToken | None = None
    ) -> ClassificationResult | Failure:
        pixels = frame.pixels if isinstance(frame, CapturedFrame) else frame
        try:
            return await self._adapter.classify(pixels, self._top_k)
        except ClassifyError as e:
            logger.warning("Classification failed: %s", e)
            return Failure(error=str(e))


def create_path(config: SnapbiteConfig) -> AnalysisPath:
    """Create the analysis path selected by configuration."""
    path_name = config.analysis.path

    match path_name:
        case "ollama":
            try:
                strategy = PromptStrategy(config.analysis.prompt)
            except ValueError:
                raise ValueError(
                    f"Unknown prompt strategy: {config.analysis.prompt!r} "
                    f"(choose json or compact)"
                ) from None
            gateway = OllamaGateway(
                base_url=config.ollama.base_url,
                timeout=config.ollama.timeout,
                max_attempts=config.ollama.max_attempts,
                backoff=config.ollama.backoff,
            )
            return GenerativePath(
                gateway,
                strategy=strategy,
                model=config.ollama.model,
                strict=config.analysis.strict_parsing,
            )
        case "classifier":
            if not 1 <= config.classifier.top_k <= MAX_TOP_K:
                raise ValueError(
                    f"classifier.top_k must be between 1 and {MAX_TOP_K}, "
                    f"got {config.classifier.top_k}"
                )
            adapter = ClassifierAdapter(
                model_path=config.classifier.model_path,
                labels_path=config.classifier.labels_path,
                scale=config.classifier.scale,
                mean=config.classifier.mean,
                std=config.classifier.std,
            )
            return ClassifierPath(adapter, top_k=config.classifier.top_k)
        case _:
            raise ValueError(
                f"Unknown analysis path: {path_name!r} "
                f"(choose ollama or classifier)"
            )


__all__ = [
    "AnalysisPath",
    "ClassifierAdapter",
    "ClassifierPath",
    "Frame",
    "GenerativePath",
    "OllamaGateway",
    "PathResult",
    "PromptStrategy",
    "create_path",
]
