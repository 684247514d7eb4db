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

"""Connectivity check run before each transcription request."""

import requests
import structlog

logger = structlog.get_logger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/"
PROBE_TIMEOUT = 5  # seconds


def check_connectivity(url: str = GEMINI_API_URL, timeout: float = PROBE_TIMEOUT) -> bool:
    """
    Check whether the transcription service host is reachable.

    Any HTTP response counts as online; only transport failures count as offline.
    """
    try:
        requests.head(url, timeout=timeout, allow_redirects=False)
        return True
    except requests.RequestException as e:
        logger.warning("connectivity_check_failed", url=url, error=str(e))
        return False
