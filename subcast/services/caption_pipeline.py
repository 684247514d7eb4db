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
Caption pipeline - sequential, rate-limited chunk processing.

Usage:
    from subcast.services.caption_pipeline import CaptionPipeline

    pipeline = CaptionPipeline.from_config(config, client)
    state = pipeline.run("movie.mp4")
    if state.status == PipelineStatus.COMPLETED:
        write_srt(state.segments, "movie.srt")

Chunks are dispatched strictly one after another. The service enforces a
requests-per-minute ceiling shared by all chunks, so after every
successful chunk (except the last) the pipeline waits a fixed gap even
when nothing failed. A chunk that exhausts its failover ladder stops the
run; captions assembled before it stay in the returned state.
"""

import uuid
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import structlog
from pydub import AudioSegment

from subcast.core.analytics import DEFAULT_INCIDENT_LIMIT, AnalyticsRecorder
from subcast.core.audio_preparer import AudioPreparer, load_source, source_duration_seconds
from subcast.core.chunk_planner import plan_chunks
from subcast.core.dispatch import ChunkDispatcher, FailoverSequencer, RetryPolicy
from subcast.core.model_catalog import get_ladder
from subcast.core.progress import CancellationToken, ProgressCallback, ProgressUpdate
from subcast.core.segment_assembler import SegmentAssembler
from subcast.core.transcription_client import TranscriptionClient
from subcast.models.pipeline import PipelineState, PipelineStatus
from subcast.models.profile import ModelProfile
from subcast.utils.config import Config
from subcast.utils.exceptions import SourceDecodeError, SubcastError

logger = structlog.get_logger(__name__)


class CaptionPipeline:
    """
    Orchestrates planning, preparation, dispatch and assembly for one source at a time.

    Suspension happens only inside the transcription call, recovery waits
    and the inter-request gap. Every wait goes through ``sleep`` (by default
    the cancellation token's interruptible sleep) and is announced to the
    progress callback with its duration first.
    """

    def __init__(
        self,
        client: TranscriptionClient,
        ladder: Sequence[ModelProfile],
        chunk_duration_seconds: float = 600.0,
        target_sample_rate: int = 16000,
        request_gap_seconds: float = 12.0,
        policy: Optional[RetryPolicy] = None,
        resume_from_last_rung: bool = False,
        incident_limit: int = DEFAULT_INCIDENT_LIMIT,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        sleep: Optional[Callable[[float], None]] = None,
        connectivity_check: Optional[Callable[[], bool]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            client: Transcription backend
            ladder: Failover ladder for the selected processing mode
            chunk_duration_seconds: Nominal chunk length
            target_sample_rate: Sample rate of the encoded chunk audio
            request_gap_seconds: Mandatory pause after each successful chunk but the last
            policy: Retry/backoff policy (defaults: 5s retry, 60s quota cooldown, 1 retry per rung)
            resume_from_last_rung: Start each chunk on the rung that last succeeded
            incident_limit: Maximum incidents kept in the log
            progress_callback: Receives a ProgressUpdate on every state change
            cancel_token: Token checked before every request and every wait
            sleep: Wait function, overridable for tests
            connectivity_check: Called before each request; False counts as a transient failure
        """
        self.chunk_duration_seconds = chunk_duration_seconds
        self.request_gap_seconds = request_gap_seconds
        self.progress_callback = progress_callback
        self.cancel_token = cancel_token or CancellationToken()
        self.sleep = sleep or self.cancel_token.sleep

        self.preparer = AudioPreparer(target_sample_rate=target_sample_rate)
        self.analytics = AnalyticsRecorder(incident_limit=incident_limit)
        self.assembler = SegmentAssembler()
        self.sequencer = FailoverSequencer(ladder, resume_from_last_rung=resume_from_last_rung)
        self.dispatcher = ChunkDispatcher(
            client=client,
            sequencer=self.sequencer,
            policy=policy or RetryPolicy(),
            analytics=self.analytics,
            pause=self._pause,
            cancel_token=self.cancel_token,
            connectivity_check=connectivity_check,
        )
        self.state = PipelineState()

    @classmethod
    def from_config(cls, config: Config, client: TranscriptionClient, **kwargs) -> "CaptionPipeline":
        """Build a pipeline from loaded configuration. Keyword arguments override."""
        options = dict(
            ladder=get_ladder(config.processing_mode),
            chunk_duration_seconds=config.chunk_duration_seconds,
            target_sample_rate=config.target_sample_rate,
            request_gap_seconds=config.request_gap_seconds,
            policy=RetryPolicy(
                retry_delay_seconds=config.retry_delay_seconds,
                quota_cooldown_seconds=config.quota_cooldown_seconds,
                max_retries_per_rung=config.max_retries_per_rung,
            ),
            resume_from_last_rung=config.resume_from_last_rung,
            incident_limit=config.incident_log_limit,
        )
        options.update(kwargs)
        return cls(client=client, **options)

    def run(self, source: Union[str, Path, AudioSegment]) -> PipelineState:
        """
        Process a whole source into a caption track.

        Args:
            source: Path to a local audio/video file, or already decoded audio

        Returns:
            Final PipelineState. Status is COMPLETED or ERROR; on ERROR the
            segments assembled before the failure are kept.
        """
        self._reset()
        source_name = source if isinstance(source, (str, Path)) else "<decoded audio>"
        structlog.contextvars.bind_contextvars(run_id=uuid.uuid4().hex[:12], source=str(source_name))
        self.analytics.mark_started()

        try:
            self._set_status(PipelineStatus.CONNECTING, "Extracting High-Fidelity Audio...")
            audio = source if isinstance(source, AudioSegment) else load_source(str(source))

            windows = plan_chunks(source_duration_seconds(audio), self.chunk_duration_seconds)
            self.state.total_chunks = len(windows)
            self._set_status(PipelineStatus.STREAMING, f"Initializing Pipeline: {len(windows)} batches detected.")
            logger.info("pipeline_started", chunks=len(windows), chunk_duration_seconds=self.chunk_duration_seconds)

            for window in windows:
                self.cancel_token.raise_if_cancelled()
                chunk_number = window.index + 1
                self._set_status(PipelineStatus.STREAMING, f"Processing Batch {chunk_number} of {len(windows)}...")

                # Prepared once; every retry of this chunk reuses the payload
                try:
                    payload = self.preparer.prepare(audio, window)
                except Exception as e:
                    raise SourceDecodeError(f"Could not prepare batch {chunk_number}: {e}", chunk_index=window.index) from e

                outcome = self.dispatcher.dispatch(payload)
                self.assembler.add_chunk(outcome.segments, window)
                self.state.segments = self.assembler.track
                self.state.completed_chunks += 1
                self._notify()
                logger.info(
                    "chunk_completed",
                    chunk_index=window.index,
                    model=outcome.profile.id,
                    attempts=outcome.attempts,
                    segments=len(outcome.segments),
                )

                if chunk_number < len(windows):
                    gap = self.request_gap_seconds
                    self._pause(gap, f"Batch {chunk_number} Done. Cooldown ({gap:g}s)...")

            self._set_status(PipelineStatus.COMPLETED, "Success. Full translation mapped to SRT.")
            logger.info("pipeline_completed", segments=len(self.state.segments))

        except SubcastError as e:
            self.state.error = str(e)
            self._set_status(PipelineStatus.ERROR, e.message)
            logger.error("pipeline_failed", error=str(e), completed_chunks=self.state.completed_chunks)

        finally:
            self.analytics.mark_finished()
            self.state.analytics = self.analytics.snapshot()
            self.state.incidents = self.analytics.incidents()
            structlog.contextvars.unbind_contextvars("run_id", "source")

        return self.state

    def cancel(self) -> None:
        """Request cancellation; takes effect at the next request or wait."""
        self.cancel_token.cancel()

    def _reset(self) -> None:
        self.state = PipelineState()
        self.analytics.reset()
        self.assembler.reset()
        self.sequencer.reset()

    def _pause(self, seconds: float, message: str) -> None:
        """Announce a wait, then wait it out unless cancelled."""
        self.cancel_token.raise_if_cancelled()
        self.state.message = message
        self.state.analytics = self.analytics.snapshot()
        self._notify(cooldown_seconds=seconds)
        if seconds > 0:
            self.sleep(seconds)
        self.cancel_token.raise_if_cancelled()

    def _set_status(self, status: PipelineStatus, message: str) -> None:
        self.state.status = status
        self.state.message = message
        self._notify()

    def _notify(self, cooldown_seconds: Optional[float] = None) -> None:
        if self.progress_callback is None:
            return
        self.progress_callback(
            ProgressUpdate(
                status=self.state.status,
                progress_pct=self.state.progress_pct,
                message=self.state.message,
                completed_chunks=self.state.completed_chunks,
                total_chunks=self.state.total_chunks,
                cooldown_seconds=cooldown_seconds,
            )
        )
