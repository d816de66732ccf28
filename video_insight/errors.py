"""Typed failures raised by the pipeline stages and their HTTP mapping."""

from dataclasses import dataclass


class VideoInsightError(Exception):
    """Base class for failures with a human-readable message."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(VideoInsightError):
    """Required configuration is missing or malformed."""


class ValidationError(VideoInsightError):
    status_code = 400


class MissingFieldError(ValidationError):
    pass


class InvalidLocatorError(ValidationError):
    pass


class UnsupportedFileTypeError(ValidationError):
    pass


class DownloadError(VideoInsightError):
    pass


class DownloadTimeoutError(DownloadError):
    pass


class DownloadTooLargeError(DownloadError):
    pass


class DnsResolutionError(DownloadError):
    """Host name could not be resolved; retried once by the fetcher."""


class StreamResolutionError(DownloadError):
    """Hosting page did not lead to a downloadable stream."""


class AudioExtractionError(VideoInsightError):
    pass


class TranscriptionError(VideoInsightError):
    pass


class AudioFileMissingError(TranscriptionError):
    pass


class EmptyAudioError(TranscriptionError):
    pass


class EmptyTranscriptError(TranscriptionError):
    pass


class GenerationError(VideoInsightError):
    pass


class QuizParseError(GenerationError):
    pass


@dataclass(frozen=True)
class ErrorClassification:
    status: int
    message: str


def classify_error(exc: BaseException) -> ErrorClassification:
    """Map any failure to the HTTP status and message shown to the caller."""
    if isinstance(exc, VideoInsightError):
        return ErrorClassification(status=exc.status_code, message=exc.message)
    message = str(exc) or type(exc).__name__
    return ErrorClassification(status=500, message=message)
