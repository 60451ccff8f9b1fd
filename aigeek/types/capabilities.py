"""Model capability profile types."""

from enum import Enum

from pydantic import BaseModel, Field


class SpeedClass(str, Enum):
    """Inference speed class, slowest first."""

    SLOW = "slow"
    MEDIUM = "medium"
    FAST = "fast"
    ULTRA_FAST = "ultra-fast"

    @property
    def rank(self) -> int:
        """Lower rank is faster."""
        return _SPEED_RANK[self]


class QualityClass(str, Enum):
    """Quality/reasoning class, weakest first."""

    BASIC = "basic"
    GOOD = "good"
    EXCELLENT = "excellent"
    STATE_OF_THE_ART = "state-of-the-art"

    @property
    def rank(self) -> int:
        """Lower rank is better."""
        return _QUALITY_RANK[self]


_SPEED_RANK = {
    SpeedClass.ULTRA_FAST: 0,
    SpeedClass.FAST: 1,
    SpeedClass.MEDIUM: 2,
    SpeedClass.SLOW: 3,
}

_QUALITY_RANK = {
    QualityClass.STATE_OF_THE_ART: 0,
    QualityClass.EXCELLENT: 1,
    QualityClass.GOOD: 2,
    QualityClass.BASIC: 3,
}


class TaskSupport(BaseModel):
    """Per-task support flags."""

    text_generation: bool = True
    code_generation: bool = True
    reasoning: bool = False
    analysis: bool = True
    summarization: bool = True
    translation: bool = True
    question_answering: bool = True
    creative_writing: bool = True
    structured_output: bool = True


class PerformanceProfile(BaseModel):
    """Speed/quality/reasoning classes."""

    speed: SpeedClass = SpeedClass.MEDIUM
    quality: QualityClass = QualityClass.GOOD
    reasoning: QualityClass = QualityClass.BASIC


class CapabilityProfile(BaseModel):
    """What a model supports: limits, modalities, tasks and performance class."""

    max_tokens: int = 4096
    context_window: int = 4096
    supports_vision: bool = False
    supports_audio: bool = False
    supports_function_calling: bool = False
    supports_json_output: bool = True
    supports_streaming: bool = True
    tasks: TaskSupport = Field(default_factory=TaskSupport)
    performance: PerformanceProfile = Field(default_factory=PerformanceProfile)
