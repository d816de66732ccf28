"""Main pipeline: uploaded file or remote URL → audio → transcript, with guaranteed cleanup."""

import enum
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Protocol

from video_insight.audio_utils import audio_path_for, extract_audio
from video_insight.download_utils import (
    DEFAULT_MAX_BYTES,
    DEFAULT_TIMEOUT_SECONDS,
    resolve_and_download,
)
from video_insight.errors import UnsupportedFileTypeError

logger = logging.getLogger(__name__)

# Supported upload extensions
VIDEO_EXTENSIONS = (".mp4", ".avi", ".mov", ".wmv")


class Transcriber(Protocol):
    async def transcribe(self, audio_path: str | Path) -> str: ...


class SourceKind(str, enum.Enum):
    UPLOAD = "upload"
    REMOTE = "remote"


class Stage(str, enum.Enum):
    RECEIVED = "received"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    TRANSCRIBING = "transcribing"
    CLEANUP = "cleanup"
    RESPONDED = "responded"


@dataclass
class Job:
    source: SourceKind
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    stage: Stage = Stage.RECEIVED
    artifacts: list[Path] = field(default_factory=list)

    def advance(self, stage: Stage) -> None:
        logger.info("job %s: %s -> %s", self.job_id, self.stage.value, stage.value)
        self.stage = stage

    def track(self, path: str | Path) -> Path:
        path = Path(path)
        if path not in self.artifacts:
            self.artifacts.append(path)
        return path


@dataclass(frozen=True)
class PipelineResult:
    job_id: str
    transcript: str


def check_video_extension(filename: str) -> str:
    """Return the lower-cased extension, or raise if it is not a supported video type."""
    suffix = Path(filename or "").suffix.lower()
    if suffix not in VIDEO_EXTENSIONS:
        raise UnsupportedFileTypeError(f"Supported formats: {', '.join(VIDEO_EXTENSIONS)}")
    return suffix


def cleanup_artifacts(job: Job) -> None:
    """Unlink every artifact of a job; failures are logged, never raised."""
    for path in job.artifacts:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("job %s: could not remove %s: %s", job.job_id, path, e)


class TranscriptPipeline:
    """
    Runs one Job through download → extraction → transcription.

    Stages run strictly one after another. Whatever happens, every file the
    job created is removed before the call returns; a failing stage stops the
    job and its exception propagates unchanged.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        work_dir: str | Path = "uploads",
        *,
        fetcher: Callable[..., Awaitable[Path]] = resolve_and_download,
        extractor: Callable[[Path], Awaitable[Path]] = extract_audio,
        download_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_download_bytes: int = DEFAULT_MAX_BYTES,
    ):
        self.transcriber = transcriber
        self.work_dir = Path(work_dir)
        self.fetcher = fetcher
        self.extractor = extractor
        self.download_timeout = download_timeout
        self.max_download_bytes = max_download_bytes

    async def transcribe_upload(self, filename: str, content: bytes) -> PipelineResult:
        """Store an uploaded video and transcribe it."""
        suffix = check_video_extension(filename)
        job = Job(source=SourceKind.UPLOAD)
        try:
            self.work_dir.mkdir(parents=True, exist_ok=True)
            video_path = job.track(self.work_dir / f"video-{job.job_id}{suffix}")
            video_path.write_bytes(content)
            transcript = await self._transcribe_video(job, video_path)
        except Exception as e:
            logger.warning("job %s failed during %s: %s", job.job_id, job.stage.value, e)
            raise
        finally:
            self._finish(job)
        return PipelineResult(job_id=job.job_id, transcript=transcript)

    async def process_remote(self, video_url: str) -> PipelineResult:
        """Download a remote video (direct URL or hosting page) and transcribe it."""
        job = Job(source=SourceKind.REMOTE)
        try:
            job.advance(Stage.DOWNLOADING)
            video_path = job.track(await self.fetcher(
                video_url,
                self.work_dir,
                job.job_id,
                timeout=self.download_timeout,
                max_bytes=self.max_download_bytes,
            ))
            transcript = await self._transcribe_video(job, video_path)
        except Exception as e:
            logger.warning("job %s failed during %s: %s", job.job_id, job.stage.value, e)
            raise
        finally:
            self._finish(job)
        return PipelineResult(job_id=job.job_id, transcript=transcript)

    async def _transcribe_video(self, job: Job, video_path: Path) -> str:
        job.advance(Stage.EXTRACTING)
        # Known before extraction so a partial WAV is reclaimed too
        job.track(audio_path_for(video_path))
        audio_path = job.track(await self.extractor(video_path))

        job.advance(Stage.TRANSCRIBING)
        return await self.transcriber.transcribe(audio_path)

    def _finish(self, job: Job) -> None:
        job.advance(Stage.CLEANUP)
        cleanup_artifacts(job)
        job.advance(Stage.RESPONDED)
