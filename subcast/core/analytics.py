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
Per-model request analytics and a bounded incident log.

Operability only: nothing in the pipeline reads these numbers to make
decisions. Writes come from the pipeline thread; snapshot() and
incidents() may be called from any thread.
"""

import threading
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List

import structlog

from subcast.models.analytics import AnalyticsSnapshot, Incident, IncidentSeverity, ModelMetric

logger = structlog.get_logger(__name__)

DEFAULT_INCIDENT_LIMIT = 50


class AnalyticsRecorder:
    """Accumulates request outcomes, latencies, failovers and incidents."""

    def __init__(self, incident_limit: int = DEFAULT_INCIDENT_LIMIT):
        self.incident_limit = incident_limit
        self._lock = threading.Lock()
        self._snapshot = AnalyticsSnapshot()
        self._incidents: Deque[Incident] = deque(maxlen=incident_limit)

    def reset(self) -> None:
        """Start over for a new source."""
        with self._lock:
            self._snapshot = AnalyticsSnapshot()
            self._incidents = deque(maxlen=self.incident_limit)

    def mark_started(self) -> None:
        with self._lock:
            self._snapshot.start_time = datetime.now(timezone.utc)
            self._snapshot.end_time = None

    def mark_finished(self) -> None:
        with self._lock:
            self._snapshot.end_time = datetime.now(timezone.utc)

    def record_attempt(self, model_id: str, success: bool, latency_seconds: float) -> None:
        """Record the outcome and wall-clock latency of one request."""
        with self._lock:
            metric = self._snapshot.model_metrics.setdefault(model_id, ModelMetric())
            if success:
                metric.success += 1
                self._snapshot.successful_requests += 1
            else:
                metric.fail += 1
            metric.total_latency += latency_seconds
            self._snapshot.total_requests += 1

    def record_failover(self) -> None:
        with self._lock:
            self._snapshot.failover_events += 1

    def record_incident(
        self,
        model_label: str,
        category: str,
        detail: str,
        severity: IncidentSeverity = IncidentSeverity.WARNING,
    ) -> Incident:
        """Append to the incident log, dropping the oldest entry when full."""
        incident = Incident(model_label=model_label, category=category, detail=detail, severity=severity)
        with self._lock:
            self._incidents.append(incident)
        logger.debug("incident_recorded", model=model_label, category=category, severity=severity.value)
        return incident

    def snapshot(self) -> AnalyticsSnapshot:
        with self._lock:
            return self._snapshot.model_copy(deep=True)

    def incidents(self) -> List[Incident]:
        """Incidents, oldest first."""
        with self._lock:
            return list(self._incidents)
