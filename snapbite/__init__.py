"""Photograph a meal and estimate its nutrition."""

from .camera import Camera, CapturedFrame
from .config import SnapbiteConfig, load_config
from .models import (
    AnalysisOutcome,
    ClassificationResult,
    Failure,
    PartialFailure,
    Prediction,
    Success,
)
from .nutrition import FoodAnalysis, NutrientRecord, NutritionTotals, aggregate, parse
from .orchestrator import CaptureOrchestrator, ViewState
from .vision import (
    AnalysisPath,
    ClassifierAdapter,
    ClassifierPath,
    GenerativePath,
    OllamaGateway,
    create_path,
)

__all__ = [
    "Camera",
    "CapturedFrame",
    "SnapbiteConfig",
    "load_config",
    "AnalysisOutcome",
    "Success",
    "PartialFailure",
    "Failure",
    "ClassificationResult",
    "Prediction",
    "FoodAnalysis",
    "NutrientRecord",
    "NutritionTotals",
    "aggregate",
    "parse",
    "CaptureOrchestrator",
    "ViewState",
    "AnalysisPath",
    "GenerativePath",
    "ClassifierPath",
    "ClassifierAdapter",
    "OllamaGateway",
    "create_path",
]
