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
Unit tests for CaptionPipeline.

Runs the whole pipeline against a synthetic 3.5 second source split into
one-second chunks (four batches) with a scripted transcription client.
"""

import pytest
import structlog

from subcast.core.audio_preparer import source_from_samples
from subcast.core.progress import CancellationToken
from subcast.models.caption import RawSegment
from subcast.models.pipeline import PipelineStatus
from subcast.services.caption_pipeline import CaptionPipeline
from subcast.utils.config import Config
from subcast.utils.exceptions import QuotaExceededError, TransientFaultError

SEGMENT = RawSegment(start=0.1, end=0.5, text="line")


@pytest.fixture
def updates():
    return []


@pytest.fixture
def make_pipeline(two_rung_ladder, sleeper, updates):
    """Factory for a pipeline with one-second chunks and recorded waits."""

    def _make(client, **kwargs):
        options = dict(
            ladder=two_rung_ladder,
            chunk_duration_seconds=1.0,
            target_sample_rate=8000,
            request_gap_seconds=12.0,
            sleep=sleeper,
            progress_callback=updates.append,
        )
        options.update(kwargs)
        return CaptionPipeline(client=client, **options)

    return _make


class TestCaptionPipelineSuccess:
    """Runs where every chunk eventually succeeds."""

    def test_all_chunks_assembled(self, make_pipeline, scripted_client, synthetic_source):
        client = scripted_client(default=[SEGMENT])
        pipeline = make_pipeline(client)

        state = pipeline.run(synthetic_source)

        assert state.status == PipelineStatus.COMPLETED
        assert state.message == "Success. Full translation mapped to SRT."
        assert state.total_chunks == 4
        assert state.completed_chunks == 4
        assert state.progress_pct == 100
        assert [s.start_seconds for s in state.segments] == pytest.approx([0.1, 1.1, 2.1, 3.1])
        assert state.error is None

    def test_chunks_dispatched_in_order(self, make_pipeline, scripted_client, synthetic_source):
        client = scripted_client(default=[SEGMENT])

        make_pipeline(client).run(synthetic_source)

        assert [index for _, index in client.calls] == [0, 1, 2, 3]

    def test_request_gap_between_chunks_only(self, make_pipeline, scripted_client, synthetic_source, sleeper):
        """The mandatory gap follows every chunk except the last."""
        client = scripted_client(default=[SEGMENT])

        make_pipeline(client).run(synthetic_source)

        assert sleeper.calls == [12.0, 12.0, 12.0]

    def test_single_chunk_source_never_waits(self, make_pipeline, scripted_client, sleeper):
        source = source_from_samples([0.0] * 4000, 8000)

        state = make_pipeline(scripted_client(default=[SEGMENT])).run(source)

        assert state.status == PipelineStatus.COMPLETED
        assert sleeper.calls == []

    def test_empty_source_completes_without_requests(self, make_pipeline, scripted_client):
        client = scripted_client(default=[SEGMENT])

        state = make_pipeline(client).run(source_from_samples([], 8000))

        assert state.status == PipelineStatus.COMPLETED
        assert state.segments == []
        assert client.call_count == 0

    def test_silent_chunks_add_nothing(self, make_pipeline, scripted_client, synthetic_source):
        client = scripted_client([[SEGMENT], [], [], [SEGMENT]])

        state = make_pipeline(client).run(synthetic_source)

        assert state.status == PipelineStatus.COMPLETED
        assert [s.start_seconds for s in state.segments] == pytest.approx([0.1, 3.1])

    def test_retries_reuse_prepared_payload(self, make_pipeline, scripted_client, synthetic_source):
        """A chunk is encoded once no matter how many attempts it takes."""
        client = scripted_client([TransientFaultError("503"), QuotaExceededError("429")], default=[SEGMENT])

        state = make_pipeline(client).run(synthetic_source)

        assert state.status == PipelineStatus.COMPLETED
        assert client.payloads[0] is client.payloads[1] is client.payloads[2]
        assert client.models_called[:3] == ["model-a", "model-a", "model-b"]

    def test_analytics_attached_to_state(self, make_pipeline, scripted_client, synthetic_source):
        client = scripted_client([QuotaExceededError("429")], default=[SEGMENT])

        state = make_pipeline(client).run(synthetic_source)

        assert state.analytics.total_requests == 5
        assert state.analytics.successful_requests == 4
        assert state.analytics.failover_events == 1
        assert state.analytics.start_time is not None
        assert state.analytics.end_time >= state.analytics.start_time
        assert [i.category for i in state.incidents] == ["quota", "failover"]

    def test_rerun_starts_fresh(self, make_pipeline, scripted_client, synthetic_source):
        client = scripted_client(default=[SEGMENT])
        pipeline = make_pipeline(client)

        pipeline.run(synthetic_source)
        state = pipeline.run(synthetic_source)

        assert len(state.segments) == 4
        assert state.analytics.total_requests == 4

    def test_run_context_bound_only_during_run(self, make_pipeline, scripted_client, synthetic_source):
        """Log records emitted while a run is active carry its run_id and source."""
        client = scripted_client(default=[SEGMENT])
        seen = []
        client.on_call = lambda payload, profile: seen.append(structlog.contextvars.get_contextvars())

        make_pipeline(client).run(synthetic_source)

        assert len(seen) == 4
        assert {ctx["source"] for ctx in seen} == {"<decoded audio>"}
        assert len({ctx["run_id"] for ctx in seen}) == 1
        assert "run_id" not in structlog.contextvars.get_contextvars()

    def test_each_run_gets_new_run_id(self, make_pipeline, scripted_client, synthetic_source):
        client = scripted_client(default=[SEGMENT])
        run_ids = set()
        client.on_call = lambda payload, profile: run_ids.add(structlog.contextvars.get_contextvars()["run_id"])
        pipeline = make_pipeline(client)

        pipeline.run(synthetic_source)
        pipeline.run(synthetic_source)

        assert len(run_ids) == 2


class TestCaptionPipelineFailure:
    """Runs that end in the error state."""

    def test_exhausted_chunk_keeps_partial_output(self, make_pipeline, scripted_client, synthetic_source, sleeper):
        """Captions from chunks before the failure survive the abort."""
        client = scripted_client([[SEGMENT]], default=QuotaExceededError("429"))

        state = make_pipeline(client).run(synthetic_source)

        assert state.status == PipelineStatus.ERROR
        assert state.message == "Processing suspended: API limits persistent"
        assert "chunk_index=1" in state.error
        assert state.completed_chunks == 1
        assert state.progress_pct == 25
        assert len(state.segments) == 1
        assert state.segments[0].start_seconds == pytest.approx(0.1)
        # Gap after chunk 0, then one quota cooldown before model B
        assert sleeper.calls == [12.0, 60.0]
        assert [index for _, index in client.calls] == [0, 1, 1]

    def test_missing_source_file(self, make_pipeline, scripted_client, tmp_path):
        client = scripted_client(default=[SEGMENT])

        state = make_pipeline(client).run(str(tmp_path / "missing.mp4"))

        assert state.status == PipelineStatus.ERROR
        assert state.message == "Source file not found"
        assert state.total_chunks == 0
        assert client.call_count == 0

    def test_cancel_during_cooldown(self, make_pipeline, scripted_client, synthetic_source):
        """Cancelling while waiting stops the run and keeps finished chunks."""
        token = CancellationToken()
        client = scripted_client(default=[SEGMENT])
        pipeline = make_pipeline(client, cancel_token=token, sleep=lambda seconds: token.cancel())

        state = pipeline.run(synthetic_source)

        assert state.status == PipelineStatus.ERROR
        assert state.message == "Processing cancelled"
        assert len(state.segments) == 1
        assert client.call_count == 1

    def test_cancel_before_run(self, make_pipeline, scripted_client, synthetic_source):
        client = scripted_client(default=[SEGMENT])
        pipeline = make_pipeline(client)
        pipeline.cancel()

        state = pipeline.run(synthetic_source)

        assert state.status == PipelineStatus.ERROR
        assert client.call_count == 0


class TestCaptionPipelineProgress:
    """Progress callback behaviour."""

    def test_status_transitions(self, make_pipeline, scripted_client, synthetic_source, updates):
        make_pipeline(scripted_client(default=[SEGMENT])).run(synthetic_source)

        statuses = []
        for update in updates:
            if not statuses or statuses[-1] != update.status:
                statuses.append(update.status)

        assert statuses == [PipelineStatus.CONNECTING, PipelineStatus.STREAMING, PipelineStatus.COMPLETED]

    def test_batch_messages(self, make_pipeline, scripted_client, synthetic_source, updates):
        make_pipeline(scripted_client(default=[SEGMENT])).run(synthetic_source)
        messages = [u.message for u in updates]

        assert "Initializing Pipeline: 4 batches detected." in messages
        assert "Processing Batch 2 of 4..." in messages
        assert "Batch 1 Done. Cooldown (12s)..." in messages

    def test_progress_is_monotonic(self, make_pipeline, scripted_client, synthetic_source, updates):
        make_pipeline(scripted_client(default=[SEGMENT])).run(synthetic_source)
        progress = [u.progress_pct for u in updates]

        assert progress == sorted(progress)
        assert progress[-1] == 100
        assert {25, 50, 75} <= set(progress)

    def test_cooldown_announced_before_every_wait(self, make_pipeline, scripted_client, synthetic_source):
        """Each wait is preceded by an update carrying its duration."""
        events = []
        client = scripted_client([TransientFaultError("503")], default=[SEGMENT])
        pipeline = make_pipeline(
            client,
            progress_callback=lambda u: events.append(("update", u.cooldown_seconds)),
            sleep=lambda seconds: events.append(("sleep", seconds)),
        )

        pipeline.run(synthetic_source)

        sleeps = [i for i, event in enumerate(events) if event[0] == "sleep"]
        assert len(sleeps) == 4
        for i in sleeps:
            assert events[i - 1] == ("update", events[i][1])
        assert [events[i][1] for i in sleeps] == [5.0, 12.0, 12.0, 12.0]


class TestFromConfig:
    """Tests for CaptionPipeline.from_config()."""

    def test_uses_config_values(self, tmp_path, scripted_client):
        config = Config(
            output_path=tmp_path / "out",
            processing_mode="silentwave",
            request_gap_seconds=3,
            retry_delay_seconds=2,
            quota_cooldown_seconds=30,
            max_retries_per_rung=2,
            resume_from_last_rung=True,
        )

        pipeline = CaptionPipeline.from_config(config, scripted_client())

        assert pipeline.sequencer.ladder[0].id == "gemini-3-flash-preview"
        assert pipeline.sequencer.resume_from_last_rung is True
        assert pipeline.request_gap_seconds == 3
        assert pipeline.dispatcher.policy.quota_cooldown_seconds == 30
        assert pipeline.dispatcher.policy.max_retries_per_rung == 2

    def test_keyword_overrides(self, tmp_path, scripted_client, two_rung_ladder):
        config = Config(output_path=tmp_path / "out")

        pipeline = CaptionPipeline.from_config(config, scripted_client(), ladder=two_rung_ladder, chunk_duration_seconds=30)

        assert pipeline.sequencer.ladder == two_rung_ladder
        assert pipeline.chunk_duration_seconds == 30
