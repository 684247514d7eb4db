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
Assemble chunk-relative results into one globally ordered caption track.

The track is re-sorted on every merge instead of relying on the order in
which chunks complete, so merging the same chunk results in any order
yields the same track. Python's sort is stable, which keeps ties in
insertion order.
"""

from typing import List, Sequence

from subcast.models.caption import CaptionSegment, RawSegment, TimeWindow


def merge_segments(
    existing_track: Sequence[CaptionSegment],
    chunk_result: Sequence[RawSegment],
    window: TimeWindow,
) -> List[CaptionSegment]:
    """
    Offset a chunk's segments by its window start and merge them into the track.

    Args:
        existing_track: Current track, sorted by start_seconds
        chunk_result: Segments relative to the chunk start (may be empty)
        window: The chunk's window on the source timeline

    Returns:
        A new list sorted by start_seconds. Existing segments are reused, never modified.
    """
    new_segments = [
        CaptionSegment(
            start_seconds=raw.start + window.start,
            end_seconds=raw.end + window.start,
            text=raw.text,
        )
        for raw in chunk_result
    ]
    return sorted([*existing_track, *new_segments], key=lambda seg: seg.start_seconds)


class SegmentAssembler:
    """Holds the caption track for one run."""

    def __init__(self):
        self._track: List[CaptionSegment] = []

    @property
    def track(self) -> List[CaptionSegment]:
        return list(self._track)

    def __len__(self) -> int:
        return len(self._track)

    def add_chunk(self, chunk_result: Sequence[RawSegment], window: TimeWindow) -> List[CaptionSegment]:
        """Merge one chunk and return the segments it contributed."""
        before = {seg.id for seg in self._track}
        self._track = merge_segments(self._track, chunk_result, window)
        return [seg for seg in self._track if seg.id not in before]

    def reset(self) -> None:
        self._track = []
