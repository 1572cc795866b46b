"""Argus: a tool-using LLM code review agent."""

from argus.config import ArgusSettings, load_settings
from argus.main import app, build_orchestrator
from argus.orchestration.review_loop import ReviewLoop, ReviewOutcome


__version__ = "0.1.0"

__all__ = [
    "app",
    "ArgusSettings",
    "build_orchestrator",
    "load_settings",
    "ReviewLoop",
    "ReviewOutcome",
    "__version__",
]
