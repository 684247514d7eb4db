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
Static model catalog and failover ladders.

A ladder is tried top to bottom for every chunk. Ladders are selected by
processing mode and addressed by position only.

Sources:
- Google: https://ai.google.dev/gemini-api/docs/models
- Google Structured Outputs: https://ai.google.dev/gemini-api/docs/structured-output
"""

from typing import Dict, Tuple, Union

from subcast.models.profile import ModelProfile, ProcessingMode, PromptVariant

FailoverLadder = Tuple[ModelProfile, ...]

LADDERS: Dict[ProcessingMode, FailoverLadder] = {
    ProcessingMode.TITAN: (
        ModelProfile(id="gemini-3-pro-preview", human_label="Gemini 3 Pro", prompt_variant=PromptVariant.SEMANTIC),
        ModelProfile(id="gemini-2.5-pro", human_label="Gemini 2.5 Pro", prompt_variant=PromptVariant.SEMANTIC),
        ModelProfile(id="gemini-2.5-flash", human_label="Gemini 2.5 Flash", prompt_variant=PromptVariant.SEMANTIC),
    ),
    ProcessingMode.SILENTWAVE: (
        ModelProfile(
            id="gemini-3-flash-preview", human_label="Gemini 3 Flash", prompt_variant=PromptVariant.VERBATIM
        ),
        ModelProfile(id="gemini-2.5-flash", human_label="Gemini 2.5 Flash", prompt_variant=PromptVariant.VERBATIM),
        ModelProfile(
            id="gemini-2.5-flash-lite", human_label="Gemini 2.5 Flash Lite", prompt_variant=PromptVariant.VERBATIM
        ),
    ),
    ProcessingMode.GLOBALLINK: (
        ModelProfile(
            id="gemini-3-flash-preview", human_label="Gemini 3 Flash", prompt_variant=PromptVariant.SEMANTIC
        ),
        ModelProfile(id="gemini-2.5-flash", human_label="Gemini 2.5 Flash", prompt_variant=PromptVariant.SEMANTIC),
        ModelProfile(id="gemini-2.5-pro", human_label="Gemini 2.5 Pro", prompt_variant=PromptVariant.SEMANTIC),
    ),
}


def get_ladder(mode: Union[ProcessingMode, str]) -> FailoverLadder:
    """
    Return the failover ladder for a processing mode.

    Raises:
        ValueError: If the mode is unknown
    """
    if not isinstance(mode, ProcessingMode):
        mode = str(mode).lower()
    try:
        return LADDERS[ProcessingMode(mode)]
    except (ValueError, KeyError) as e:
        valid = ", ".join(m.value for m in ProcessingMode)
        raise ValueError(f"Unknown processing mode: {mode}. Must be one of: {valid}") from e
