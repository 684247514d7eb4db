"""
Service layer for subcast

Orchestration that the CLI (or any other front end) drives.
"""

from .caption_pipeline import CaptionPipeline

__all__ = [
    'CaptionPipeline',
]
