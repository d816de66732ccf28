"""Video insight service: video upload or URL → audio → transcript → Gemini text tasks."""

from video_insight.pipeline import TranscriptPipeline

__all__ = ["TranscriptPipeline"]
