import logging
from typing import Any, Optional

import numpy as np
from piper.config import SynthesisConfig
from piper.voice import PiperVoice

from .config import TTSConfig
from .contracts import AudioClip
from .errors import InitializationError, SynthesisError
from .voice_assets import ensure_voice_assets


class PiperTTSEngine:
    """Piper voice wrapper. Not safe for concurrent use; callers serialize."""

    def __init__(
        self,
        config: TTSConfig,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config
        self._logger = logger or logging.getLogger(__name__)
        model_file, model_config_file = ensure_voice_assets(config, self._logger)

        try:
            self._voice = PiperVoice.load(str(model_file), config_path=str(model_config_file))
        except Exception as error:
            raise InitializationError(
                f"Failed to load Piper voice {model_file.name}: {error}"
            ) from error

        voice_config = self._voice.config
        self._sample_rate_hz = int(voice_config.sample_rate)
        self._syn_config: Optional[SynthesisConfig] = None
        if config.speaker_id is not None:
            speakers = int(getattr(voice_config, "num_speakers", 1) or 1)
            if config.speaker_id >= speakers:
                raise InitializationError(
                    f"speaker_id {config.speaker_id} is out of range; "
                    f"{model_file.name} has {speakers} speaker(s)"
                )
            self._syn_config = SynthesisConfig(speaker_id=config.speaker_id)

        self._logger.info(
            "Loaded Piper voice %s (%d Hz, speaker=%s)",
            model_file.name,
            self._sample_rate_hz,
            "default" if config.speaker_id is None else config.speaker_id,
        )

    @property
    def sample_rate_hz(self) -> int:
        return self._sample_rate_hz

    def synthesize(self, text: str) -> AudioClip:
        if not text.strip():
            raise SynthesisError("Text to synthesize cannot be empty")

        try:
            parts = [
                self._chunk_samples(chunk)
                for chunk in self._voice.synthesize(text, syn_config=self._syn_config)
            ]
        except SynthesisError:
            raise
        except Exception as error:
            raise SynthesisError(f"Piper synthesis failed for {text!r}: {error}") from error

        samples = np.concatenate(parts) if parts else np.zeros(0, dtype=np.float32)
        if samples.size == 0:
            raise SynthesisError(f"Piper produced no audio for {text!r}")
        return AudioClip(samples=samples, sample_rate_hz=self._sample_rate_hz)

    @staticmethod
    def _chunk_samples(chunk: Any) -> np.ndarray:
        """Mono float32 samples in [-1, 1] from one Piper audio chunk."""
        floats = getattr(chunk, "audio_float_array", None)
        if floats is not None:
            return np.asarray(floats, dtype=np.float32).reshape(-1)

        raw = getattr(chunk, "audio_int16_bytes", chunk)
        if isinstance(raw, np.ndarray):
            pcm = raw.astype(np.int16, copy=False).reshape(-1)
        elif isinstance(raw, (bytes, bytearray, memoryview)):
            pcm = np.frombuffer(raw, dtype=np.int16)
        else:
            raise SynthesisError(f"Unsupported Piper audio chunk: {type(chunk).__name__}")
        return pcm.astype(np.float32) / 32768.0
