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
Dispatch-with-recovery for a single chunk.

The dispatcher walks the failover ladder with an explicit
(ladder_index, retry_count) state. On every failed request the
RetryPolicy picks one of three actions, in this order of precedence:

1. Quota error: escalate to the next rung after the long cooldown.
   The same model is certain to refuse again inside the rate window.
2. Transient or malformed response with retries left on this rung:
   retry the same rung after a short backoff.
3. Otherwise: escalate to the next rung after the short delay.

An escalation requested on the last rung ends the chunk with
ChunkExhaustedError. Retries are still allowed on the last rung.

With the defaults (one retry per rung) a chunk that always fails
transiently makes 2 * len(ladder) requests and one that always hits
quota makes len(ladder) requests.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

import structlog

from subcast.models.analytics import IncidentSeverity
from subcast.models.caption import EncodedPayload, RawSegment
from subcast.models.profile import ModelProfile
from subcast.utils.exceptions import ChunkExhaustedError, DispatchError, TransientFaultError

from .analytics import AnalyticsRecorder
from .progress import CancellationToken
from .transcription_client import TranscriptionClient, check_offset_timing

logger = structlog.get_logger(__name__)

# Called before every recovery wait with (seconds, human-readable reason)
PauseFn = Callable[[float, str], None]


class DispatchAction(str, Enum):
    RETRY = "retry"
    ESCALATE = "escalate"
    FAIL = "fail"


@dataclass(frozen=True)
class AttemptState:
    """Transient per-chunk position on the ladder."""

    ladder_index: int = 0
    retry_count: int = 0


@dataclass(frozen=True)
class RetryDecision:
    action: DispatchAction
    delay_seconds: float = 0.0
    next_state: Optional[AttemptState] = None


class RetryPolicy:
    """Pure decision function over (error category, attempt state)."""

    def __init__(
        self,
        retry_delay_seconds: float = 5.0,
        quota_cooldown_seconds: float = 60.0,
        max_retries_per_rung: int = 1,
    ):
        self.retry_delay_seconds = retry_delay_seconds
        self.quota_cooldown_seconds = quota_cooldown_seconds
        self.max_retries_per_rung = max_retries_per_rung

    def backoff_delay(self, retry_count: int) -> float:
        """Same-rung retry delay: base * 2^retry_count."""
        return self.retry_delay_seconds * (2**retry_count)

    def decide(self, error: DispatchError, state: AttemptState, ladder_length: int) -> RetryDecision:
        if error.category == "quota":
            delay = self.quota_cooldown_seconds
        elif state.retry_count < self.max_retries_per_rung:
            return RetryDecision(
                action=DispatchAction.RETRY,
                delay_seconds=self.backoff_delay(state.retry_count),
                next_state=AttemptState(ladder_index=state.ladder_index, retry_count=state.retry_count + 1),
            )
        else:
            delay = self.retry_delay_seconds

        if state.ladder_index >= ladder_length - 1:
            return RetryDecision(action=DispatchAction.FAIL)

        return RetryDecision(
            action=DispatchAction.ESCALATE,
            delay_seconds=delay,
            next_state=AttemptState(ladder_index=state.ladder_index + 1, retry_count=0),
        )


class FailoverSequencer:
    """
    Holds one mode's ladder and chooses where each chunk starts on it.

    By default every chunk starts at rung 0. With resume_from_last_rung the
    rung that last succeeded becomes the starting point for the next chunk.
    """

    def __init__(self, ladder: Sequence[ModelProfile], resume_from_last_rung: bool = False):
        if not ladder:
            raise ValueError("Failover ladder must contain at least one model")
        self.ladder = tuple(ladder)
        self.resume_from_last_rung = resume_from_last_rung
        self._last_success_index = 0

    def __len__(self) -> int:
        return len(self.ladder)

    @property
    def start_index(self) -> int:
        return self._last_success_index if self.resume_from_last_rung else 0

    def profile_at(self, ladder_index: int) -> ModelProfile:
        return self.ladder[ladder_index]

    def record_success(self, ladder_index: int) -> None:
        self._last_success_index = ladder_index

    def reset(self) -> None:
        self._last_success_index = 0


@dataclass
class DispatchOutcome:
    segments: List[RawSegment]
    profile: ModelProfile
    attempts: int


class ChunkDispatcher:
    """Runs the recovery state machine for one chunk payload at a time."""

    def __init__(
        self,
        client: TranscriptionClient,
        sequencer: FailoverSequencer,
        policy: RetryPolicy,
        analytics: AnalyticsRecorder,
        pause: PauseFn,
        cancel_token: Optional[CancellationToken] = None,
        connectivity_check: Optional[Callable[[], bool]] = None,
    ):
        self.client = client
        self.sequencer = sequencer
        self.policy = policy
        self.analytics = analytics
        self.pause = pause
        self.cancel_token = cancel_token or CancellationToken()
        self.connectivity_check = connectivity_check

    def dispatch(self, payload: EncodedPayload) -> DispatchOutcome:
        """
        Transcribe one chunk, retrying and failing over as needed.

        Raises:
            ChunkExhaustedError: The ladder ran out for this chunk
            PipelineCancelledError: Cancelled before a request or during a wait
        """
        chunk_number = payload.window.index + 1
        state = AttemptState(ladder_index=self.sequencer.start_index)
        attempts = 0

        while True:
            self.cancel_token.raise_if_cancelled()
            profile = self.sequencer.profile_at(state.ladder_index)
            attempts += 1
            log = logger.bind(
                chunk_index=payload.window.index,
                model=profile.id,
                ladder_index=state.ladder_index,
                retry_count=state.retry_count,
            )

            request_sent = False
            started = time.monotonic()
            try:
                if self.connectivity_check is not None and not self.connectivity_check():
                    raise TransientFaultError("No network connectivity", model=profile.id)
                request_sent = True
                log.debug("chunk_dispatch_started")
                segments = self.client.transcribe(payload, profile)
                check_offset_timing(segments, payload.window.start)
            except DispatchError as e:
                if request_sent:
                    self.analytics.record_attempt(profile.id, success=False, latency_seconds=time.monotonic() - started)
                self.analytics.record_incident(profile.human_label, e.category, str(e))
                log.warning("chunk_dispatch_failed", category=e.category, error=str(e))

                decision = self.policy.decide(e, state, len(self.sequencer))
                if decision.action == DispatchAction.FAIL:
                    self.analytics.record_incident(
                        profile.human_label,
                        "exhausted",
                        f"Batch {chunk_number}: all models exhausted after {attempts} attempts",
                        severity=IncidentSeverity.ERROR,
                    )
                    log.error("chunk_exhausted", attempts=attempts)
                    raise ChunkExhaustedError(
                        "Processing suspended: API limits persistent",
                        chunk_index=payload.window.index,
                        attempts=attempts,
                    ) from e

                if decision.action == DispatchAction.ESCALATE:
                    next_profile = self.sequencer.profile_at(decision.next_state.ladder_index)
                    self.analytics.record_failover()
                    self.analytics.record_incident(
                        profile.human_label,
                        "failover",
                        f"Batch {chunk_number}: switching from {profile.human_label} to {next_profile.human_label}",
                        severity=IncidentSeverity.INFO,
                    )
                    log.info("model_failover", next_model=next_profile.id, delay_seconds=decision.delay_seconds)
                    if e.category == "quota":
                        message = (
                            f"Quota Exceeded on {profile.human_label}. "
                            f"Cooling down for {round(decision.delay_seconds)}s before {next_profile.human_label}..."
                        )
                    else:
                        message = f"{profile.human_label} unstable. Switching to {next_profile.human_label}..."
                else:
                    message = f"Retrying batch {chunk_number} on {profile.human_label}..."

                self.pause(decision.delay_seconds, message)
                state = decision.next_state
                continue

            latency = time.monotonic() - started
            self.analytics.record_attempt(profile.id, success=True, latency_seconds=latency)
            self.sequencer.record_success(state.ladder_index)
            log.info("chunk_dispatch_succeeded", segments=len(segments), latency_seconds=round(latency, 3))
            return DispatchOutcome(segments=segments, profile=profile, attempts=attempts)
