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

"""Pipeline run state."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .analytics import AnalyticsSnapshot, Incident
from .caption import CaptionSegment


class PipelineStatus(str, Enum):
    """
    Run status.

    Transitions: IDLE -> CONNECTING -> STREAMING -> COMPLETED,
    with ERROR reachable from CONNECTING or STREAMING.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class PipelineState:
    """
    Everything a caller needs to observe or export a run.

    The pipeline is the single writer. Readers on other threads should use
    snapshot() rather than reading the live lists.
    """

    status: PipelineStatus = PipelineStatus.IDLE
    message: str = "Import a source to begin."
    segments: List[CaptionSegment] = field(default_factory=list)
    total_chunks: int = 0
    completed_chunks: int = 0
    analytics: AnalyticsSnapshot = field(default_factory=AnalyticsSnapshot)
    incidents: List[Incident] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def progress_pct(self) -> int:
        if not self.total_chunks:
            return 0
        return round(self.completed_chunks / self.total_chunks * 100)

    @property
    def is_terminal(self) -> bool:
        return self.status in (PipelineStatus.COMPLETED, PipelineStatus.ERROR)

    def snapshot(self) -> "PipelineState":
        """Return a copy safe to hand to another thread."""
        return PipelineState(
            status=self.status,
            message=self.message,
            segments=list(self.segments),
            total_chunks=self.total_chunks,
            completed_chunks=self.completed_chunks,
            analytics=self.analytics.model_copy(deep=True),
            incidents=list(self.incidents),
            error=self.error,
        )
