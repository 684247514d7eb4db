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

import json
from pathlib import Path

import click

# This module can be executed in two ways:
# 1. Package mode (recommended): `subcast` command (defined in pyproject.toml entry point)
# 2. Module mode (development): `python -m subcast.cli` (uses __main__ guard at bottom)
from .core.audio_preparer import load_source, source_duration_seconds
from .core.chunk_planner import plan_chunks
from .core.model_catalog import get_ladder
from .core.progress import ProgressUpdate
from .core.srt_formatter import format_srt_timestamp, write_srt
from .core.transcription_client import GeminiTranscriptionClient
from .logging import configure_structlog
from .models.pipeline import PipelineState, PipelineStatus
from .models.profile import ProcessingMode
from .services.caption_pipeline import CaptionPipeline
from .utils.config import load_config
from .utils.exceptions import SubcastError
from .utils.network import check_connectivity


class CLIContext:
    """Container for CLI dependency injection with type safety."""

    def __init__(self, config):
        self.config = config


@click.group()
@click.option("--config", "-c", help="Path to .env file")
@click.pass_context
def main(ctx, config):
    """subcast - Resilient chunked subtitle generation with Gemini"""
    # Logs go to stderr so SRT or JSON on stdout stays clean
    configure_structlog()

    try:
        config_obj = load_config(config)
        ctx.obj = CLIContext(config=config_obj)
    except SubcastError as e:
        click.echo(f"❌ Configuration error: {e}", err=True)
        ctx.exit(1)


def _echo_progress(update: ProgressUpdate) -> None:
    if update.cooldown_seconds:
        click.echo(f"⏳ {update.message}")
    else:
        click.echo(f"[{update.progress_pct:3d}%] {update.message}")


def _write_analytics(state: PipelineState, path: str) -> None:
    payload = {
        "status": state.status.value,
        "completed_chunks": state.completed_chunks,
        "total_chunks": state.total_chunks,
        "analytics": state.analytics.model_dump(mode="json"),
        "incidents": [incident.model_dump(mode="json") for incident in state.incidents],
    }
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)


def _print_summary(state: PipelineState) -> None:
    analytics = state.analytics
    click.echo("\n📊 Run summary")
    click.echo(f"   Requests: {analytics.total_requests} ({analytics.successful_requests} successful)")
    click.echo(f"   Failovers: {analytics.failover_events}")
    for model_id, metric in analytics.model_metrics.items():
        click.echo(f"   • {model_id}: {metric.success} ok / {metric.fail} failed, avg {metric.avg_latency:.2f}s")
    if state.incidents:
        click.echo(f"   Incidents: {len(state.incidents)} (latest: {state.incidents[-1].detail})")


@main.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--mode",
    "-m",
    type=click.Choice([mode.value for mode in ProcessingMode]),
    help="Processing mode (overrides PROCESSING_MODE)",
)
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="SRT output path (default: OUTPUT_PATH/<name>.srt)")
@click.option("--chunk-duration", type=click.FloatRange(min=0, min_open=True), help="Chunk length in seconds")
@click.option("--language", "-l", help="Target subtitle language (overrides TARGET_LANGUAGE)")
@click.option("--analytics-json", type=click.Path(dir_okay=False), help="Write analytics and incidents to this JSON file")
@click.pass_context
def translate(ctx, source, mode, output, chunk_duration, language, analytics_json):
    """Generate subtitles for a local audio or video file.

    On a fatal error the captions produced so far are still written.
    """
    if ctx.obj is None:
        click.echo("❌ Configuration not loaded. Please check your setup.", err=True)
        ctx.exit(1)

    config = ctx.obj.config
    if not config.gemini_api_key:
        click.echo("❌ Gemini API key not configured", err=True)
        click.echo("   Set GEMINI_API_KEY in .env", err=True)
        ctx.exit(1)

    processing_mode = mode or config.processing_mode
    overrides = {"ladder": get_ladder(processing_mode)}
    if chunk_duration:
        overrides["chunk_duration_seconds"] = chunk_duration
    if config.check_connectivity:
        overrides["connectivity_check"] = check_connectivity

    client = GeminiTranscriptionClient(
        api_key=config.gemini_api_key,
        target_language=language or config.target_language,
    )
    pipeline = CaptionPipeline.from_config(config, client, progress_callback=_echo_progress, **overrides)

    click.echo(f"🎬 Translating {source} in {processing_mode} mode")
    try:
        state = pipeline.run(source)
    except KeyboardInterrupt:
        click.echo("\n⏹ Interrupted", err=True)
        ctx.exit(130)

    srt_path = Path(output) if output else config.output_path / f"{Path(source).stem}.srt"
    if state.segments:
        write_srt(state.segments, str(srt_path))
        click.echo(f"💾 Wrote {len(state.segments)} captions to {srt_path}")

    if analytics_json:
        _write_analytics(state, analytics_json)
        click.echo(f"💾 Analytics written to {analytics_json}")

    _print_summary(state)

    if state.status != PipelineStatus.COMPLETED:
        click.echo(f"\n❌ {state.message}", err=True)
        if state.segments:
            click.echo(
                f"   Partial output covers {state.completed_chunks} of {state.total_chunks} batches", err=True
            )
        ctx.exit(1)

    click.echo("\n✅ Done")


@main.command()
@click.argument("source", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--duration", type=click.FloatRange(min=0), help="Source duration in seconds (instead of SOURCE)")
@click.option("--chunk-duration", type=click.FloatRange(min=0, min_open=True), help="Chunk length in seconds")
@click.pass_context
def plan(ctx, source, duration, chunk_duration):
    """Show how a source would be split into batches, without calling the API."""
    if ctx.obj is None:
        click.echo("❌ Configuration not loaded. Please check your setup.", err=True)
        ctx.exit(1)

    if source is None and duration is None:
        click.echo("❌ Provide SOURCE or --duration", err=True)
        ctx.exit(1)

    if duration is None:
        try:
            duration = source_duration_seconds(load_source(source))
        except SubcastError as e:
            click.echo(f"❌ {e}", err=True)
            ctx.exit(1)

    config = ctx.obj.config
    windows = plan_chunks(duration, chunk_duration or config.chunk_duration_seconds)
    batches = len(windows)
    # Wall-clock floor: one mandatory gap between consecutive requests
    min_wait = max(0, batches - 1) * config.request_gap_seconds

    click.echo(f"📐 {batches} batch(es) for {format_srt_timestamp(duration)}")
    for window in windows:
        click.echo(
            f"   {window.index + 1:3d}. {format_srt_timestamp(window.start)} -> "
            f"{format_srt_timestamp(window.end)} ({window.duration:g}s)"
        )
    click.echo(f"   Minimum pacing delay: {min_wait:g}s")


@main.command()
def models():
    """List the failover ladder of every processing mode."""
    for mode in ProcessingMode:
        click.echo(f"{mode.value}:")
        for rung, profile in enumerate(get_ladder(mode), start=1):
            click.echo(f"   {rung}. {profile.human_label} ({profile.id}, {profile.prompt_variant.value})")


if __name__ == "__main__":
    main()
