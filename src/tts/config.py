"""Configuration model for Piper voice assets and output selection."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional


class TTSConfigurationError(Exception):
    """Raised when TTS configuration is invalid."""


def _text(settings: Any, name: str, default: str = "") -> str:
    return (getattr(settings, name, default) or default).strip()


@dataclass(frozen=True)
class TTSConfig:
    """Where the Piper voice lives, which speaker to use and which device plays it."""
    model_path: str = ""
    hf_filename: str = ""
    hf_repo_id: str = ""
    hf_revision: str = "main"
    speaker_id: Optional[int] = None
    output_device_index: Optional[int] = None

    @property
    def model_file(self) -> Path:
        # Voices are stored flat even when the repo keeps them in subfolders.
        return Path(self.model_path).expanduser() / Path(self.hf_filename).name

    @property
    def model_config_file(self) -> Path:
        return self.model_file.with_name(f"{self.model_file.name}.json")

    @classmethod
    def from_settings(cls, settings) -> "TTSConfig":
        voice_dir = _text(settings, "model_path")
        voice_file = _text(settings, "hf_filename")
        if not voice_dir:
            raise TTSConfigurationError("tts.model_path cannot be empty")

        if not voice_file:
            # model_path may name the .onnx voice itself.
            direct = Path(voice_dir)
            if direct.suffix.lower() != ".onnx":
                raise TTSConfigurationError(
                    "tts.hf_filename is required unless tts.model_path points at an .onnx file"
                )
            voice_dir, voice_file = str(direct.parent), direct.name

        speaker_id = getattr(settings, "speaker_id", None)
        if speaker_id is not None and speaker_id < 0:
            raise TTSConfigurationError(
                f"tts.speaker_id must be non-negative, got: {speaker_id}"
            )

        return cls(
            model_path=voice_dir,
            hf_filename=voice_file,
            hf_repo_id=_text(settings, "hf_repo_id"),
            hf_revision=_text(settings, "hf_revision", "main"),
            speaker_id=speaker_id,
            output_device_index=getattr(settings, "output_device", None),
        )
