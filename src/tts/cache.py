"""Text-keyed cache of synthesized announcement audio."""

from __future__ import annotations

import logging
import threading
from typing import Awaitable, Callable, Optional

from .contracts import AudioClip

Synthesizer = Callable[[str], Awaitable[AudioClip]]


class AudioCache:
    """Thread-safe map from exact announcement text to ready-to-play audio.

    Entries live for the whole session; the vocabulary is bounded by the
    configured announcements so there is no eviction. Stored sample buffers
    are read-only.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._clips: dict[str, AudioClip] = {}
        self._lock = threading.Lock()
        self._logger = logger or logging.getLogger("tts.cache")
        self._hits = 0
        self._misses = 0

    def get(self, text: str) -> Optional[AudioClip]:
        with self._lock:
            return self._clips.get(text)

    def put(self, text: str, clip: AudioClip) -> AudioClip:
        """Store `clip` unless `text` is already cached; return the stored clip."""
        frozen = clip.frozen()
        with self._lock:
            return self._clips.setdefault(text, frozen)

    async def get_or_synthesize(self, text: str, synthesize: Synthesizer) -> AudioClip:
        with self._lock:
            cached = self._clips.get(text)
            if cached is not None:
                self._hits += 1
            else:
                self._misses += 1
        if cached is not None:
            self._logger.debug("Audio cache hit: %r", text)
            return cached

        self._logger.debug("Audio cache miss: %r", text)
        clip = await synthesize(text)
        return self.put(text, clip)

    @property
    def hits(self) -> int:
        with self._lock:
            return self._hits

    @property
    def misses(self) -> int:
        with self._lock:
            return self._misses

    def __contains__(self, text: object) -> bool:
        with self._lock:
            return text in self._clips

    def __len__(self) -> int:
        with self._lock:
            return len(self._clips)
