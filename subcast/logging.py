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

"""Structured logging for subcast runs.

Environment Variables:
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL. Default: INFO
    LOG_FORMAT: console, json, cloudwatch or auto. Default: auto
    LOG_FILE: Also append records to this rotating file. Default: unset

Every record emitted while ``CaptionPipeline.run`` is active carries the
``run_id`` and ``source`` of that run, so interleaved dispatch, failover
and cooldown events can be grouped per translation.

Example:
    import structlog
    from subcast.logging import configure_structlog

    configure_structlog()
    logger = structlog.get_logger(__name__)
    logger.info("chunk_dispatch_succeeded", chunk_index=2, latency_seconds=4.5)
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import IO, Any, List, MutableMapping, Optional

import structlog
from structlog.dev import ConsoleRenderer
from structlog.processors import JSONRenderer

LOG_FORMATS = ("console", "json", "cloudwatch")

LOG_FILE_MAX_BYTES = 20 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# Marks root handlers owned by configure_structlog()
_HANDLER_TAG = "_subcast_handler"


def _cloudwatch_fields(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Rename keys to what CloudWatch Logs Insights indexes (message, @timestamp, LEVEL)."""
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


def get_log_level() -> int:
    """Numeric level from LOG_LEVEL; unknown names fall back to INFO."""
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def get_log_format(stream: Optional[IO[str]] = None) -> str:
    """
    Resolve LOG_FORMAT to one of LOG_FORMATS.

    ``auto`` picks console when ``stream`` (stderr by default) is a terminal
    and json otherwise. Unknown values are treated as json.
    """
    requested = os.getenv("LOG_FORMAT", "auto").strip().lower()
    if requested == "auto":
        stream = stream or sys.stderr
        return "console" if stream.isatty() else "json"
    return requested if requested in LOG_FORMATS else "json"


def build_processors(log_format: str, colors: bool = False) -> List[Any]:
    """Processor chain ending in the renderer for ``log_format``."""
    processors: List[Any] = [
        # run_id and source bound by the pipeline
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if log_format == "console":
        processors.append(ConsoleRenderer(colors=colors))
    elif log_format == "cloudwatch":
        processors.extend([structlog.processors.format_exc_info, _cloudwatch_fields, JSONRenderer()])
    else:
        processors.extend([structlog.processors.format_exc_info, JSONRenderer()])
    return processors


def detach_log_handlers() -> None:
    """Remove and close root handlers installed by an earlier configure_structlog()."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()


def _tagged(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    setattr(handler, _HANDLER_TAG, True)
    return handler


def configure_structlog(stream: Optional[IO[str]] = None) -> None:
    """
    Configure structlog from LOG_LEVEL, LOG_FORMAT and LOG_FILE.

    Records go to ``stream`` (stderr by default) so SRT or JSON written to
    stdout stays clean. With LOG_FILE set, records are routed through the
    stdlib root logger and also appended to a rotating file; colors are
    then disabled so the file stays plain text. Calling this again replaces
    the previous handlers instead of stacking them.
    """
    stream = stream or sys.stderr
    level = get_log_level()
    log_format = get_log_format(stream)
    log_file = os.getenv("LOG_FILE")

    detach_log_handlers()
    colors = not log_file and stream.isatty()
    options = dict(
        processors=build_processors(log_format, colors=colors),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if not log_file:
        structlog.configure(logger_factory=structlog.PrintLoggerFactory(file=stream), **options)
        return

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(_tagged(logging.StreamHandler(stream), level))
    root.addHandler(
        _tagged(RotatingFileHandler(log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS), level)
    )
    structlog.configure(logger_factory=structlog.stdlib.LoggerFactory(), **options)
