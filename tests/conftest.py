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
Pytest fixtures for subcast tests.

Provides ScriptedTranscriptionClient and RecordingSleeper so the pipeline
can be exercised without network access, API costs or real waiting.
Sources are synthesized in memory, so ffmpeg is not needed either.
"""

import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from subcast.core.audio_preparer import source_from_samples
from subcast.core.model_catalog import get_ladder
from subcast.core.transcription_client import TranscriptionClient
from subcast.models.caption import EncodedPayload, RawSegment
from subcast.models.profile import ModelProfile, ProcessingMode, PromptVariant

# A scripted step is either a result to return or an exception to raise
ScriptStep = Union[List[RawSegment], Exception]


class ScriptedTranscriptionClient(TranscriptionClient):
    """
    Transcription client that replays a script instead of calling an API.

    Steps are consumed one per call, in order. Once the script runs out,
    default is used for every further call (an exception to keep
    failing, or a segment list to keep succeeding). Per-model scripts take
    precedence over the shared one.

    Usage:
        client = ScriptedTranscriptionClient([QuotaExceededError("429"), [RawSegment(...)]])
        client.transcribe(payload, profile)  # raises QuotaExceededError
        client.transcribe(payload, profile)  # returns the segments
        assert client.models_called == ["gemini-3-pro-preview", "gemini-3-pro-preview"]
    """

    def __init__(
        self,
        script: Optional[Sequence[ScriptStep]] = None,
        default: Optional[ScriptStep] = None,
        per_model: Optional[Dict[str, Sequence[ScriptStep]]] = None,
    ):
        self.script = list(script or [])
        self.default = default if default is not None else []
        self.per_model = {model: list(steps) for model, steps in (per_model or {}).items()}
        self.calls: List[Tuple[str, int]] = []
        self.payloads: List[EncodedPayload] = []
        self.on_call: Optional[Callable[[EncodedPayload, ModelProfile], None]] = None

    @property
    def models_called(self) -> List[str]:
        return [model for model, _ in self.calls]

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def transcribe(self, payload: EncodedPayload, profile: ModelProfile) -> List[RawSegment]:
        self.calls.append((profile.id, payload.window.index))
        self.payloads.append(payload)
        if self.on_call is not None:
            self.on_call(payload, profile)

        if self.per_model.get(profile.id):
            step = self.per_model[profile.id].pop(0)
        elif self.script:
            step = self.script.pop(0)
        else:
            step = self.default

        if isinstance(step, Exception):
            raise step
        return list(step)


class RecordingSleeper:
    """Records requested waits instead of sleeping."""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


def make_samples(duration_seconds: float, sample_rate: int, channels: int = 1, frequency: float = 440.0) -> List[float]:
    """Interleaved sine samples at half amplitude."""
    frames = int(duration_seconds * sample_rate)
    samples = []
    for i in range(frames):
        value = 0.5 * math.sin(2 * math.pi * frequency * i / sample_rate)
        samples.extend([value] * channels)
    return samples


@pytest.fixture
def sleeper():
    """Recording sleeper that never blocks."""
    return RecordingSleeper()


@pytest.fixture
def scripted_client():
    """Factory for ScriptedTranscriptionClient."""

    def _make(script=None, default=None, per_model=None):
        return ScriptedTranscriptionClient(script=script, default=default, per_model=per_model)

    return _make


@pytest.fixture
def titan_ladder():
    return get_ladder(ProcessingMode.TITAN)


@pytest.fixture
def two_rung_ladder():
    """Short ladder with distinct ids for readable assertions."""
    return (
        ModelProfile(id="model-a", human_label="Model A", prompt_variant=PromptVariant.SEMANTIC),
        ModelProfile(id="model-b", human_label="Model B", prompt_variant=PromptVariant.SEMANTIC),
    )


@pytest.fixture
def synthetic_source():
    """3.5 seconds of mono audio at 8 kHz."""
    return source_from_samples(make_samples(3.5, 8000), 8000)


@pytest.fixture
def stereo_source():
    """1 second of stereo audio at 16 kHz."""
    return source_from_samples(make_samples(1.0, 16000, channels=2), 16000, channels=2)
