"""Two-stage announcement pipeline: serialized synthesis, gated playback."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from typing import Iterable, Optional

from .cache import AudioCache
from .contracts import AudioClip, AudioOutputLike, SpeechEngineLike
from .errors import PlaybackError, SynthesisError, TTSError

MAX_CONCURRENT_PLAYBACKS = 1


class AnnouncementPipeline:
    """Turns announcement text into audible speech.

    Synthesis holds an exclusive lock for the duration of the engine call only.
    The playback permit is taken after synthesis has finished, so the next
    announcement can synthesize while the current one is still playing, and
    two clips never play at the same time. Both blocking calls run on
    dedicated single-worker thread pools so the event loop stays responsive.
    """

    def __init__(
        self,
        engine: SpeechEngineLike,
        output: AudioOutputLike,
        *,
        cache: Optional[AudioCache] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._engine = engine
        self._output = output
        self._cache = cache if cache is not None else AudioCache()
        self._logger = logger or logging.getLogger("tts.pipeline")

        self._synthesis_lock = asyncio.Lock()
        self._playback_gate = asyncio.Semaphore(MAX_CONCURRENT_PLAYBACKS)
        self._synthesis_executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="synthesis",
        )
        self._playback_executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="playback",
        )
        self._background: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def cache(self) -> AudioCache:
        return self._cache

    @property
    def pending_count(self) -> int:
        return len(self._background)

    async def announce(self, text: str) -> None:
        """Synthesize (or reuse) and play `text`; errors belong to this call only."""
        if self._closed:
            raise TTSError("Announcement pipeline is closed")
        if not text.strip():
            self._logger.debug("Ignoring empty announcement")
            return

        clip = await self._cache.get_or_synthesize(text, self._synthesize)

        async with self._playback_gate:
            await self._play(text, clip)

    def submit(self, text: str) -> asyncio.Task[None]:
        """Schedule `announce(text)` without waiting for it; failures are logged."""
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._announce_logged(text), name=f"announce:{text}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def precache(self, texts: Iterable[str]) -> int:
        """Synthesize every distinct non-empty text up front; return how many were added."""
        unique = [text for text in dict.fromkeys(texts) if text.strip()]
        before = len(self._cache)
        for text in unique:
            await self._cache.get_or_synthesize(text, self._synthesize)
        added = len(self._cache) - before
        self._logger.info("Pre-cached %d announcement(s)", added)
        return added

    async def drain(self) -> None:
        """Wait until every submitted announcement has finished."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._synthesis_executor.shutdown(wait=False, cancel_futures=True)
        self._playback_executor.shutdown(wait=False, cancel_futures=True)

    async def _announce_logged(self, text: str) -> None:
        try:
            await self.announce(text)
        except TTSError as error:
            self._logger.error("Failed to announce %r: %s", text, error)
        except Exception as error:
            self._logger.error(
                "Unexpected announcement failure for %r: %s",
                text,
                error,
                exc_info=True,
            )

    async def _synthesize(self, text: str) -> AudioClip:
        loop = asyncio.get_running_loop()
        async with self._synthesis_lock:
            # Another caller may have synthesized the same text while we queued.
            cached = self._cache.get(text)
            if cached is not None:
                return cached

            started = loop.time()
            try:
                clip = await loop.run_in_executor(
                    self._synthesis_executor,
                    self._engine.synthesize,
                    text,
                )
            except SynthesisError:
                raise
            except Exception as error:
                raise SynthesisError(f"TTS synthesis failed for {text!r}: {error}") from error

        self._logger.debug(
            "Synthesized %r in %.3fs (%.2fs of audio)",
            text,
            loop.time() - started,
            clip.duration_seconds,
        )
        return clip

    async def _play(self, text: str, clip: AudioClip) -> None:
        loop = asyncio.get_running_loop()
        self._logger.info("Announcing: %r", text)
        try:
            await loop.run_in_executor(self._playback_executor, self._output.play, clip)
        except PlaybackError:
            raise
        except Exception as error:
            raise PlaybackError(f"Audio playback failed for {text!r}: {error}") from error
