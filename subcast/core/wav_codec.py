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
Canonical 16-bit PCM WAV container.

The service receives chunks as a plain RIFF/WAVE file with a 44-byte header:

    offset  size  field
    0       4     "RIFF"
    4       4     file size - 8
    8       4     "WAVE"
    12      4     "fmt "
    16      4     16 (fmt chunk size)
    20      2     1 (PCM)
    22      2     channels
    24      4     sample rate
    28      4     byte rate (rate * channels * 2)
    32      2     block align (channels * 2)
    34      2     16 (bits per sample)
    36      4     "data"
    40      4     data size

All integers are little-endian.
"""

import struct
from dataclasses import dataclass
from typing import Iterable, List

WAV_HEADER_SIZE = 44
BITS_PER_SAMPLE = 16
BYTES_PER_SAMPLE = BITS_PER_SAMPLE // 8
PCM_FORMAT_TAG = 1

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass
class WavInfo:
    sample_rate: int
    channels: int
    bits_per_sample: int
    pcm_data: bytes

    @property
    def frame_count(self) -> int:
        return len(self.pcm_data) // (self.channels * (self.bits_per_sample // 8))

    @property
    def duration_seconds(self) -> float:
        return self.frame_count / self.sample_rate if self.sample_rate else 0.0


def float_to_pcm16(samples: Iterable[float]) -> bytes:
    """
    Quantize float samples in [-1, 1] to signed 16-bit little-endian PCM.

    Values are clamped to [-1, 1]. Negative values scale by 0x8000 and
    positive values by 0x7FFF, truncating toward zero, so -1.0 maps to
    -32768 and 1.0 maps to 32767.
    """
    quantized = []
    for sample in samples:
        sample = max(-1.0, min(1.0, float(sample)))
        quantized.append(int(sample * 0x8000 if sample < 0 else sample * 0x7FFF))
    return struct.pack(f"<{len(quantized)}h", *quantized)


def pcm16_to_ints(pcm_data: bytes) -> List[int]:
    """Unpack signed 16-bit little-endian PCM into Python ints."""
    count = len(pcm_data) // BYTES_PER_SAMPLE
    return list(struct.unpack(f"<{count}h", pcm_data[: count * BYTES_PER_SAMPLE]))


def encode_wav(pcm_data: bytes, sample_rate: int, channels: int = 1) -> bytes:
    """
    Wrap raw 16-bit PCM in a 44-byte RIFF/WAVE header.

    Args:
        pcm_data: Interleaved signed 16-bit little-endian samples
        sample_rate: Frames per second
        channels: Channel count (1 for the transcription payload)

    Returns:
        Complete WAV file bytes
    """
    if len(pcm_data) % (channels * BYTES_PER_SAMPLE):
        raise ValueError("PCM data length is not a whole number of frames")

    block_align = channels * BYTES_PER_SAMPLE
    header = _HEADER.pack(
        b"RIFF",
        WAV_HEADER_SIZE - 8 + len(pcm_data),
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT_TAG,
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        len(pcm_data),
    )
    return header + pcm_data


def parse_wav(data: bytes) -> WavInfo:
    """
    Parse a canonical 44-byte-header PCM WAV produced by encode_wav().

    Raises:
        ValueError: If the header is not a canonical 16-bit PCM header
    """
    if len(data) < WAV_HEADER_SIZE:
        raise ValueError(f"WAV data too short: {len(data)} bytes")

    (riff, riff_size, wave, fmt, fmt_size, format_tag, channels, sample_rate, byte_rate, block_align, bits,
     data_tag, data_size) = _HEADER.unpack_from(data)

    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data":
        raise ValueError("Not a canonical RIFF/WAVE file")
    if fmt_size != 16 or format_tag != PCM_FORMAT_TAG or bits != BITS_PER_SAMPLE:
        raise ValueError(f"Unsupported WAV format (tag={format_tag}, bits={bits})")
    if riff_size != len(data) - 8 or data_size != len(data) - WAV_HEADER_SIZE:
        raise ValueError("WAV size fields do not match payload length")
    if block_align != channels * BYTES_PER_SAMPLE or byte_rate != sample_rate * block_align:
        raise ValueError("Inconsistent WAV byte rate or block align")

    return WavInfo(
        sample_rate=sample_rate,
        channels=channels,
        bits_per_sample=bits,
        pcm_data=data[WAV_HEADER_SIZE:],
    )
