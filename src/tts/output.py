"""Sounddevice-backed playback of synthesized announcements."""

import logging
import threading
from typing import Optional

import numpy as np
import sounddevice as sd

from .contracts import AudioClip
from .errors import PlaybackError

# Slack added to the clip duration before a stuck stream is reported.
_COMPLETION_GRACE_SECONDS = 2.0


class _ClipFeeder:
    """Stream callback that copies one clip into the device buffer block by block."""

    def __init__(self, samples: np.ndarray, logger: logging.Logger):
        self._samples = samples
        self._logger = logger
        self._offset = 0

    def __call__(self, outdata, frames, time_info, status) -> None:
        if status:
            self._logger.warning("Output stream status: %s", status)

        block = self._samples[self._offset : self._offset + frames]
        self._offset += len(block)
        outdata[: len(block), 0] = block
        if len(block) < frames:
            outdata[len(block) :, 0] = 0.0
            raise sd.CallbackStop()


class SoundDeviceAudioOutput:
    """Plays mono clips through one sounddevice output stream at a time.

    `play` opens a fresh stream per clip and blocks until the stream reports
    that the last block was handed to the device.
    """
    def __init__(
        self,
        output_device_index: Optional[int] = None,
        blocksize: int = 2048,
        logger: Optional[logging.Logger] = None,
    ):
        self._output_device_index = output_device_index
        self._blocksize = blocksize
        self._logger = logger or logging.getLogger(__name__)

    def play(self, clip: AudioClip) -> None:
        if clip.samples.size == 0:
            raise PlaybackError("Cannot play empty audio buffer")

        done = threading.Event()
        feeder = _ClipFeeder(clip.samples.astype(np.float32, copy=False), self._logger)
        timeout = clip.duration_seconds + _COMPLETION_GRACE_SECONDS
        try:
            stream = sd.OutputStream(
                samplerate=clip.sample_rate_hz,
                channels=1,
                dtype="float32",
                blocksize=self._blocksize,
                device=self._output_device_index,
                callback=feeder,
                finished_callback=done.set,
            )
            with stream:
                finished = done.wait(timeout)
        except Exception as error:
            raise PlaybackError(f"Audio playback failed: {error}") from error

        if not finished:
            raise PlaybackError(f"Audio stream did not finish within {timeout:.1f}s")
        self._logger.debug(
            "Played %.2fs of audio at %d Hz",
            clip.duration_seconds,
            clip.sample_rate_hz,
        )
