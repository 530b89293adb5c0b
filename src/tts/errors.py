"""Exception hierarchy for speech synthesis and playback."""


class TTSError(Exception):
    """Base exception for text-to-speech processing."""


class InitializationError(TTSError):
    """Raised when the speech engine or its model assets cannot be loaded."""


class SynthesisError(TTSError):
    """Raised when turning one announcement into audio fails."""


class PlaybackError(TTSError):
    """Raised when playing one synthesized announcement fails."""
