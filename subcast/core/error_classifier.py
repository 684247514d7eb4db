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
Error classification for transcription requests.

Turns whatever the SDK or network stack raised into one of the dispatch
error types the failover ladder understands:

- QuotaExceededError: rate or quota limiting; the same model will keep
  refusing until the rate window clears
- TransientFaultError: everything else (5xx, timeouts, resets, unknown)

MalformedResponseError is raised by response parsing, never here.

Usage:
    from subcast.core.error_classifier import classify_service_error

    try:
        response = client.models.generate_content(...)
    except Exception as e:
        raise classify_service_error(e, model="gemini-2.5-flash") from e
"""

import re
from typing import Optional

from structlog import get_logger

from subcast.utils.exceptions import DispatchError, QuotaExceededError, TransientFaultError

logger = get_logger(__name__)

QUOTA_HTTP_CODES = {
    429,  # Too Many Requests
}

# Error message patterns that indicate quota or rate limiting
QUOTA_PATTERNS = [
    r"\b429\b",
    r"resource[_\s]exhausted",
    r"quota",
    r"rate[_\s-]?limit",
    r"too many requests",
]


def is_quota_error(exception: Exception) -> bool:
    """
    Check if an exception represents rate or quota limiting.

    Args:
        exception: The exception to classify

    Returns:
        True if the service refused the request for quota reasons
    """
    status_code = _extract_http_status_code(exception)
    if status_code in QUOTA_HTTP_CODES:
        return True

    status = getattr(exception, "status", None)
    if isinstance(status, str) and status.upper() == "RESOURCE_EXHAUSTED":
        return True

    error_str = str(exception)
    for pattern in QUOTA_PATTERNS:
        if re.search(pattern, error_str, re.IGNORECASE):
            return True

    return False


def _extract_http_status_code(exception: Exception) -> Optional[int]:
    """
    Extract HTTP status code from an exception if available.

    Handles google.genai.errors.APIError (``code``), requests/httpx errors
    (``response.status_code``) and a plain ``status_code`` attribute.
    """
    code = getattr(exception, "code", None)
    if isinstance(code, int) and not isinstance(code, bool):
        return code

    response = getattr(exception, "response", None)
    if response is not None and isinstance(getattr(response, "status_code", None), int):
        return response.status_code

    status_code = getattr(exception, "status_code", None)
    if isinstance(status_code, int):
        return status_code

    return None


def classify_service_error(exception: Exception, **context) -> DispatchError:
    """
    Classify a failed service call.

    Already-classified DispatchErrors are returned unchanged.

    Args:
        exception: The original exception
        **context: Context to attach to the classified error (model, chunk_index, ...)

    Returns:
        QuotaExceededError or TransientFaultError wrapping the original message
    """
    if isinstance(exception, DispatchError):
        return exception

    error_msg = str(exception) or type(exception).__name__
    status_code = _extract_http_status_code(exception)
    if status_code is not None:
        context.setdefault("status_code", status_code)

    if is_quota_error(exception):
        logger.debug("classified_as_quota", error=error_msg)
        return QuotaExceededError(error_msg, **context)

    logger.debug("classified_as_transient", error=error_msg)
    return TransientFaultError(error_msg, **context)
