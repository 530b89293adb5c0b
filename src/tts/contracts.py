"""Audio value objects and the engine/output protocols the pipeline drives."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import numpy as np


@dataclass(frozen=True)
class AudioClip:
    """Ready-to-play mono float32 samples for one announcement."""
    samples: np.ndarray
    sample_rate_hz: int

    def __post_init__(self) -> None:
        if self.samples.ndim != 1:
            raise ValueError("AudioClip samples must be a mono (1-D) array")
        if self.sample_rate_hz <= 0:
            raise ValueError("AudioClip sample_rate_hz must be positive")

    @property
    def duration_seconds(self) -> float:
        return len(self.samples) / self.sample_rate_hz

    def frozen(self) -> "AudioClip":
        """Return a clip whose sample buffer can no longer be written."""
        if not self.samples.flags.writeable:
            return self
        samples = self.samples.copy()
        samples.setflags(write=False)
        return AudioClip(samples=samples, sample_rate_hz=self.sample_rate_hz)


class SpeechEngineLike(Protocol):
    """Blocking, not thread-safe text-to-audio engine."""
    def synthesize(self, text: str) -> AudioClip:
        ...


class AudioOutputLike(Protocol):
    """Blocking single-stream audio sink."""
    def play(self, clip: AudioClip) -> None:
        ...
