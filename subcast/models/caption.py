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
Caption pipeline data models.

A source is split into TimeWindows, each window is encoded into an
EncodedPayload, the service returns RawSegments relative to the window,
and the assembler turns those into globally timed CaptionSegments.
"""

import uuid

from pydantic import BaseModel, Field, model_validator

WAV_MEDIA_TYPE = "audio/wav"


class TimeWindow(BaseModel):
    """A half-open interval [start, end) of source time, in seconds."""

    model_config = {"frozen": True}

    index: int = Field(ge=0)
    start: float = Field(ge=0)
    end: float

    @model_validator(mode="after")
    def check_bounds(self) -> "TimeWindow":
        if self.end <= self.start:
            raise ValueError(f"window end ({self.end}) must be greater than start ({self.start})")
        return self

    @property
    def duration(self) -> float:
        return self.end - self.start


class RawSegment(BaseModel):
    """One caption entry as returned by the service, relative to the chunk start."""

    model_config = {"frozen": True}

    start: float
    end: float
    text: str


class CaptionSegment(BaseModel):
    """
    A caption on the global source timeline.

    Created only by the segment assembler and never modified afterwards.
    """

    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    start_seconds: float = Field(ge=0)
    end_seconds: float
    text: str = Field(min_length=1)

    @model_validator(mode="after")
    def check_bounds(self) -> "CaptionSegment":
        if self.end_seconds <= self.start_seconds:
            raise ValueError(
                f"caption end ({self.end_seconds}) must be greater than start ({self.start_seconds})"
            )
        return self


class EncodedPayload(BaseModel):
    """Transport-ready audio for one chunk."""

    model_config = {"frozen": True}

    data: bytes
    media_type: str = WAV_MEDIA_TYPE
    window: TimeWindow
    sample_rate: int

    @property
    def size_bytes(self) -> int:
        return len(self.data)
