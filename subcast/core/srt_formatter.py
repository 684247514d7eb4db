"""
Convert an ordered caption track to SubRip (.srt) text.
"""

from pathlib import Path
from typing import Sequence

from subcast.models.caption import CaptionSegment


def format_srt_timestamp(seconds: float) -> str:
    """Format seconds as HH:MM:SS,mmm (hours are not wrapped at 24)."""
    total_ms = int(round(max(0.0, seconds) * 1000))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, millis = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def generate_srt(segments: Sequence[CaptionSegment]) -> str:
    """
    Build SRT content from segments already in final order.

    Each block is "index\\nstart --> end\\ntext\\n" with 1-based indices;
    blocks are separated by a blank line.
    """
    blocks = []
    for index, seg in enumerate(segments, start=1):
        start = format_srt_timestamp(seg.start_seconds)
        end = format_srt_timestamp(seg.end_seconds)
        blocks.append(f"{index}\n{start} --> {end}\n{seg.text}\n")
    return "\n".join(blocks)


def write_srt(segments: Sequence[CaptionSegment], output_path: str) -> Path:
    """
    Save segments as an .srt file.

    Returns:
        Path of the written file
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(generate_srt(segments))
    return path
