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
Progress reporting and cancellation for the caption pipeline.

The pipeline never polls a UI. It pushes ProgressUpdates to a callback,
including the length of every cooldown it is about to wait out, and it
checks a CancellationToken before each request and each wait.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional

from subcast.models.pipeline import PipelineStatus
from subcast.utils.exceptions import PipelineCancelledError


@dataclass
class ProgressUpdate:
    """
    Represents a progress update during a pipeline run.

    Attributes:
        status: Current pipeline status
        progress_pct: Completed chunks as a percentage (0-100)
        message: Human-readable status message
        completed_chunks: Chunks successfully assembled so far
        total_chunks: Chunks planned for the source
        cooldown_seconds: Length of the wait that starts now, if any
    """

    status: PipelineStatus
    progress_pct: int
    message: str
    completed_chunks: int = 0
    total_chunks: int = 0
    cooldown_seconds: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "status": self.status.value,
            "progress_pct": self.progress_pct,
            "message": self.message,
            "completed_chunks": self.completed_chunks,
            "total_chunks": self.total_chunks,
            "cooldown_seconds": self.cooldown_seconds,
        }


# Callbacks receive a ProgressUpdate and return nothing
ProgressCallback = Callable[[ProgressUpdate], None]


class CancellationToken:
    """Thread-safe cancellation flag whose waits end early on cancel()."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelledError("Processing cancelled")

    def sleep(self, seconds: float) -> None:
        """
        Wait for up to ``seconds``.

        Raises:
            PipelineCancelledError: If cancelled before or during the wait
        """
        if self._event.wait(timeout=max(0.0, seconds)):
            raise PipelineCancelledError("Processing cancelled")
