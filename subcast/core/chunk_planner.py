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
Split a source duration into fixed-size, non-overlapping chunk windows.

Unlike overlapping chunking used for long-form diarized transcripts, every
window here starts exactly where the previous one ended, so segments never
need to be deduplicated at chunk boundaries.
"""

import math
from typing import List

from subcast.models.caption import TimeWindow


def plan_chunks(total_duration_seconds: float, chunk_duration_seconds: float) -> List[TimeWindow]:
    """
    Compute ordered chunk windows covering [0, total_duration_seconds).

    Args:
        total_duration_seconds: Source duration, >= 0
        chunk_duration_seconds: Nominal chunk length, > 0

    Returns:
        ceil(total / chunk) contiguous windows. The last one may be shorter
        than chunk_duration_seconds. Empty when the source has no duration.

    Raises:
        ValueError: If chunk_duration_seconds <= 0 or total_duration_seconds < 0
    """
    if chunk_duration_seconds <= 0:
        raise ValueError(f"chunk_duration_seconds must be > 0, got {chunk_duration_seconds}")
    if total_duration_seconds < 0:
        raise ValueError(f"total_duration_seconds must be >= 0, got {total_duration_seconds}")
    if total_duration_seconds == 0:
        return []

    count = math.ceil(total_duration_seconds / chunk_duration_seconds)
    windows = []
    for i in range(count):
        start = i * chunk_duration_seconds
        # Window i ends exactly where window i + 1 starts
        end = min((i + 1) * chunk_duration_seconds, total_duration_seconds)
        # Float division can yield one extra, empty window (e.g. 0.3 / 0.1)
        if end <= start:
            break
        windows.append(TimeWindow(index=i, start=start, end=end))
    return windows
