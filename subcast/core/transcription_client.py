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
Transcription clients: one audio chunk in, chunk-relative captions out.

Every request declares the same output contract, a JSON array of
{start: number, end: number, text: string} objects with all fields
required. The instruction wording depends on the profile's prompt variant.
"""

import json
import math
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from google import genai
from google.genai import types as genai_types

from subcast.models.caption import EncodedPayload, RawSegment
from subcast.models.profile import ModelProfile, PromptVariant
from subcast.utils.exceptions import MalformedResponseError

from .error_classifier import classify_service_error

DEFAULT_TARGET_LANGUAGE = "English"

INSTRUCTIONS = {
    PromptVariant.SEMANTIC: (
        "Transcribe and translate this audio into natural {language}. "
        "Translate meaning, idiom and tone rather than word for word. "
        "Output: JSON array of objects {{start, end, text}}. "
        "Timing: seconds from the start of this clip. Accuracy is critical."
    ),
    PromptVariant.VERBATIM: (
        "Transcribe this audio verbatim with full acoustic fidelity, then render each line in {language}. "
        "Keep segment boundaries on natural pauses and do not merge or summarize speech. "
        "Output: JSON array of objects {{start, end, text}}. "
        "Timing: seconds from the start of this clip. Accuracy is critical."
    ),
}

CAPTION_RESPONSE_SCHEMA = genai_types.Schema(
    type=genai_types.Type.ARRAY,
    items=genai_types.Schema(
        type=genai_types.Type.OBJECT,
        properties={
            "start": genai_types.Schema(type=genai_types.Type.NUMBER),
            "end": genai_types.Schema(type=genai_types.Type.NUMBER),
            "text": genai_types.Schema(type=genai_types.Type.STRING),
        },
        required=["start", "end", "text"],
    ),
)


def build_instruction(variant: PromptVariant, language: str = DEFAULT_TARGET_LANGUAGE) -> str:
    return INSTRUCTIONS[variant].format(language=language)


def _as_seconds(value: Any) -> Optional[float]:
    """Finite float for a JSON number, None for anything else (bools included)."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    try:
        seconds = float(value)
    except (OverflowError, ValueError):
        return None
    return seconds if math.isfinite(seconds) else None


def parse_caption_response(response_text: Optional[str]) -> List[RawSegment]:
    """
    Parse and validate a caption response.

    An empty array is valid (the chunk may be silence). Anything else that
    does not satisfy the output contract fails the whole response.

    Raises:
        MalformedResponseError: If the text is missing, not JSON, not an array,
            or any element violates the field requirements
    """
    if response_text is None or not response_text.strip():
        raise MalformedResponseError("Empty response body")

    try:
        data = json.loads(response_text)
    except (ValueError, RecursionError) as e:
        raise MalformedResponseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise MalformedResponseError(f"Expected a JSON array, got {type(data).__name__}")

    segments = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise MalformedResponseError(f"Element {i} is not an object")
        start, end, text = _as_seconds(item.get("start")), _as_seconds(item.get("end")), item.get("text")
        if start is None or end is None:
            raise MalformedResponseError(f"Element {i} has non-numeric start/end", element=i)
        if not isinstance(text, str) or not text.strip():
            raise MalformedResponseError(f"Element {i} has missing or empty text", element=i)
        if start < 0 or end <= start:
            raise MalformedResponseError(f"Element {i} has invalid timing {start}-{end}", element=i)
        segments.append(RawSegment(start=start, end=end, text=text.strip()))

    return segments


def check_offset_timing(segments: Sequence[RawSegment], offset: float) -> None:
    """
    Verify segments still form valid captions once shifted onto the source timeline.

    Float addition can absorb a tiny chunk-relative gap (0.1 and
    0.10000000000000002 both become 600.1 at offset 600).

    Raises:
        MalformedResponseError: If a shifted segment starts before 0, has zero
            or negative length, or has empty text
    """
    for i, seg in enumerate(segments):
        start, end = seg.start + offset, seg.end + offset
        if start < 0 or end <= start:
            raise MalformedResponseError(
                f"Element {i} has invalid timing {start}-{end} at offset {offset:g}s", element=i
            )
        if not seg.text:
            raise MalformedResponseError(f"Element {i} has empty text", element=i)


class TranscriptionClient(ABC):
    """Abstract base class for caption transcription backends."""

    @abstractmethod
    def transcribe(self, payload: EncodedPayload, profile: ModelProfile) -> List[RawSegment]:
        """
        Transcribe and translate one chunk.

        Args:
            payload: Encoded chunk audio
            profile: Model to address and prompt variant to use

        Returns:
            Chunk-relative segments in the order the service returned them

        Raises:
            QuotaExceededError: Service signalled rate or quota limiting
            TransientFaultError: Any other service or network failure
            MalformedResponseError: Response violates the output contract
        """
        pass


class GeminiTranscriptionClient(TranscriptionClient):
    """Gemini API client using the google.genai SDK with inline audio."""

    def __init__(self, api_key: str, target_language: str = DEFAULT_TARGET_LANGUAGE):
        """
        Initialize Gemini client.

        Args:
            api_key: Google Gemini API key
            target_language: Language captions are translated into
        """
        if not api_key:
            raise ValueError("Gemini API key is required. Set GEMINI_API_KEY in your .env file or environment.")
        self.target_language = target_language
        self.client = genai.Client(api_key=api_key)

    def _build_config(self) -> genai_types.GenerateContentConfig:
        return genai_types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=CAPTION_RESPONSE_SCHEMA,
            safety_settings=[
                genai_types.SafetySetting(category="HARM_CATEGORY_HARASSMENT", threshold="OFF"),
                genai_types.SafetySetting(category="HARM_CATEGORY_HATE_SPEECH", threshold="OFF"),
                genai_types.SafetySetting(category="HARM_CATEGORY_SEXUALLY_EXPLICIT", threshold="OFF"),
                genai_types.SafetySetting(category="HARM_CATEGORY_DANGEROUS_CONTENT", threshold="OFF"),
            ],
        )

    def _build_contents(self, payload: EncodedPayload, profile: ModelProfile) -> List[genai_types.Content]:
        return [
            genai_types.Content(
                role="user",
                parts=[
                    genai_types.Part.from_bytes(data=payload.data, mime_type=payload.media_type),
                    genai_types.Part(text=build_instruction(profile.prompt_variant, self.target_language)),
                ],
            )
        ]

    def transcribe(self, payload: EncodedPayload, profile: ModelProfile) -> List[RawSegment]:
        try:
            response = self.client.models.generate_content(
                model=profile.id,
                contents=self._build_contents(payload, profile),
                config=self._build_config(),
            )
        except Exception as e:
            raise classify_service_error(e, model=profile.id, chunk_index=payload.window.index) from e

        return parse_caption_response(self._response_text(response))

    def _response_text(self, response: Any) -> Optional[str]:
        """Get response text, falling back to the first candidate part."""
        try:
            text = response.text
        except (ValueError, AttributeError):
            text = None
        if text:
            return text

        candidates = getattr(response, "candidates", None) or []
        if candidates and candidates[0].content and candidates[0].content.parts:
            return candidates[0].content.parts[0].text
        return None
