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

"""Data models for subcast."""

from .analytics import AnalyticsSnapshot, Incident, IncidentSeverity, ModelMetric
from .caption import CaptionSegment, EncodedPayload, RawSegment, TimeWindow
from .pipeline import PipelineState, PipelineStatus
from .profile import ModelProfile, ProcessingMode, PromptVariant

__all__ = [
    "AnalyticsSnapshot",
    "CaptionSegment",
    "EncodedPayload",
    "Incident",
    "IncidentSeverity",
    "ModelMetric",
    "ModelProfile",
    "PipelineState",
    "PipelineStatus",
    "ProcessingMode",
    "PromptVariant",
    "RawSegment",
    "TimeWindow",
]
