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

"""Model profiles and processing modes."""

from enum import Enum

from pydantic import BaseModel


class ProcessingMode(str, Enum):
    """
    Processing mode selector.

    Each mode owns one failover ladder:
    - TITAN: deep semantic translation, strongest models first
    - SILENTWAVE: verbatim transcription with acoustic fidelity
    - GLOBALLINK: semantic translation, fast models first
    """

    TITAN = "titan"
    SILENTWAVE = "silentwave"
    GLOBALLINK = "globallink"


class PromptVariant(str, Enum):
    """Instruction wording sent with each chunk."""

    VERBATIM = "verbatim"
    SEMANTIC = "semantic"


class ModelProfile(BaseModel):
    """Static catalog entry for one remote model."""

    model_config = {"frozen": True}

    id: str  # Remote model identifier, e.g. "gemini-2.5-flash"
    human_label: str
    prompt_variant: PromptVariant
