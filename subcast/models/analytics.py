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

"""Request analytics and incident log models."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, computed_field


class IncidentSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ModelMetric(BaseModel):
    """Per-model request counters."""

    success: int = 0
    fail: int = 0
    total_latency: float = 0.0  # seconds, summed over all attempts

    @computed_field  # type: ignore[misc]
    @property
    def avg_latency(self) -> float:
        attempts = self.success + self.fail
        return self.total_latency / attempts if attempts else 0.0


class AnalyticsSnapshot(BaseModel):
    """
    Process-lifetime request aggregates.

    Counters only ever grow; a new snapshot is created when a new source is loaded.
    """

    total_requests: int = 0
    successful_requests: int = 0
    failover_events: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    model_metrics: Dict[str, ModelMetric] = Field(default_factory=dict)


class Incident(BaseModel):
    """One entry of the bounded incident log."""

    model_config = {"frozen": True}

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    model_label: str
    category: str  # quota, transient, malformed, failover, exhausted
    detail: str
    severity: IncidentSeverity = IncidentSeverity.WARNING
