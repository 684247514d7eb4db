# Copyright 2025 subcast
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Source decoding and per-chunk audio preparation.

Decoding and resampling are delegated to pydub (ffmpeg for container
formats). Each chunk is cut on integer frame boundaries, converted to
16-bit mono at the target rate and wrapped in a canonical WAV header.
"""

from pathlib import Path
from typing import Sequence

import structlog
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from subcast.models.caption import EncodedPayload, TimeWindow
from subcast.utils.exceptions import SourceDecodeError

from .wav_codec import BYTES_PER_SAMPLE, encode_wav, float_to_pcm16

logger = structlog.get_logger(__name__)


def load_source(source_path: str) -> AudioSegment:
    """
    Decode the audio track of a local audio or video file.

    Raises:
        SourceDecodeError: If the file is missing or cannot be decoded
    """
    path = Path(source_path)
    if not path.exists():
        raise SourceDecodeError("Source file not found", path=str(path))

    try:
        audio = AudioSegment.from_file(str(path))
    except (CouldntDecodeError, OSError, IndexError) as e:
        raise SourceDecodeError(f"Could not decode audio track: {e}", path=str(path)) from e

    logger.info(
        "source_decoded",
        path=str(path),
        duration_seconds=round(source_duration_seconds(audio), 3),
        sample_rate=audio.frame_rate,
        channels=audio.channels,
    )
    return audio


def source_from_samples(samples: Sequence[float], sample_rate: int, channels: int = 1) -> AudioSegment:
    """
    Build a decoded source from interleaved float samples in [-1, 1].

    Useful for audio that was decoded elsewhere (or synthesized) and only
    needs to go through chunk preparation.
    """
    if len(samples) % channels:
        raise ValueError("Sample count is not a multiple of the channel count")
    return AudioSegment(
        data=float_to_pcm16(samples),
        sample_width=BYTES_PER_SAMPLE,
        frame_rate=sample_rate,
        channels=channels,
    )


def source_duration_seconds(audio: AudioSegment) -> float:
    """Exact duration from the frame count (len() rounds to milliseconds)."""
    return audio.frame_count() / audio.frame_rate


class AudioPreparer:
    """Turns a time window of the decoded source into a transport payload."""

    TARGET_CHANNELS = 1

    def __init__(self, target_sample_rate: int = 16000):
        self.target_sample_rate = target_sample_rate

    def prepare(self, source: AudioSegment, window: TimeWindow) -> EncodedPayload:
        """
        Extract, downmix, resample and encode one chunk.

        Frame indices are truncated: [int(start * rate), int(end * rate)).
        Decode and resample errors propagate unchanged.
        """
        frame_start = int(window.start * source.frame_rate)
        frame_end = min(int(window.end * source.frame_rate), int(source.frame_count()))

        chunk = source.get_sample_slice(frame_start, frame_end)
        if chunk.channels != self.TARGET_CHANNELS:
            chunk = chunk.set_channels(self.TARGET_CHANNELS)
        if chunk.sample_width != BYTES_PER_SAMPLE:
            chunk = chunk.set_sample_width(BYTES_PER_SAMPLE)
        if chunk.frame_rate != self.target_sample_rate:
            chunk = chunk.set_frame_rate(self.target_sample_rate)

        data = encode_wav(chunk.raw_data, self.target_sample_rate, channels=self.TARGET_CHANNELS)

        logger.debug(
            "chunk_prepared",
            chunk_index=window.index,
            frames=frame_end - frame_start,
            payload_bytes=len(data),
        )
        return EncodedPayload(data=data, window=window, sample_rate=self.target_sample_rate)
