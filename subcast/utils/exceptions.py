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
Custom exception classes for subcast.

This module defines application-specific exceptions that allow
selective error handling without catching system exceptions like
KeyboardInterrupt or SystemExit.

Two families exist:

- DispatchError subclasses describe a single failed request to the
  transcription service. They are recoverable and never escape the
  chunk dispatcher.
- The remaining SubcastError subclasses are terminal for a pipeline run.

Example:
    try:
        pipeline.run(source)
    except SubcastError as e:
        logger.error("pipeline_failed", error=str(e))
    except KeyboardInterrupt:
        logger.info("interrupted_by_user")
"""


class SubcastError(Exception):
    """
    Base exception for all subcast application errors.

    Attributes:
        message: Human-readable error message
        context: Optional dict of additional error context (model, chunk_index, path, ...)

    Example:
        raise SubcastError("Failed to export subtitles", path="out/movie.srt")
    """

    def __init__(self, message: str, **context):
        """
        Initialize SubcastError.

        Args:
            message: Human-readable error message
            **context: Optional keyword arguments for error context
        """
        super().__init__(message)
        self.message = message
        self.context = context if context else {}

    def __str__(self):
        """Return string representation of error."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def __repr__(self):
        """Return detailed representation for debugging."""
        name = type(self).__name__
        if self.context:
            return f"{name}(message={self.message!r}, context={self.context!r})"
        return f"{name}(message={self.message!r})"


class ConfigurationError(SubcastError):
    """Raised when configuration values are missing or invalid."""

    pass


class DispatchError(SubcastError):
    """
    A single transcription request failed.

    Subclasses set ``category``, which the retry policy uses to decide
    between a same-model retry and an escalation to the next model.
    """

    category = "transient"


class QuotaExceededError(DispatchError):
    """The service reported rate or quota limiting (HTTP 429, RESOURCE_EXHAUSTED)."""

    category = "quota"


class TransientFaultError(DispatchError):
    """Network or service error of unknown cause."""

    category = "transient"


class MalformedResponseError(DispatchError):
    """The service response does not satisfy the caption output contract."""

    category = "malformed"


class ChunkExhaustedError(SubcastError):
    """
    Every model in the failover ladder failed for one chunk.

    Example:
        raise ChunkExhaustedError(
            "Processing suspended: API limits persistent",
            chunk_index=3,
            attempts=6,
        )
    """

    pass


class SourceDecodeError(SubcastError):
    """The input media could not be decoded into audio samples."""

    pass


class PipelineCancelledError(SubcastError):
    """The run was cancelled through its cancellation token."""

    pass


__all__ = [
    "SubcastError",
    "ConfigurationError",
    "DispatchError",
    "QuotaExceededError",
    "TransientFaultError",
    "MalformedResponseError",
    "ChunkExhaustedError",
    "SourceDecodeError",
    "PipelineCancelledError",
]
