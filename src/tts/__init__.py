"""Public exports for text-to-speech components."""

from .cache import AudioCache
from .config import TTSConfig, TTSConfigurationError
from .contracts import AudioClip, AudioOutputLike, SpeechEngineLike
from .engine import PiperTTSEngine
from .errors import InitializationError, PlaybackError, SynthesisError, TTSError
from .output import SoundDeviceAudioOutput
from .pipeline import AnnouncementPipeline
from .voice_assets import ensure_voice_assets

__all__ = [
    "AnnouncementPipeline",
    "AudioCache",
    "AudioClip",
    "AudioOutputLike",
    "InitializationError",
    "PiperTTSEngine",
    "PlaybackError",
    "SoundDeviceAudioOutput",
    "SpeechEngineLike",
    "SynthesisError",
    "TTSConfig",
    "TTSConfigurationError",
    "TTSError",
    "ensure_voice_assets",
]
