"""Extract audio from video files using pydub (requires ffmpeg)."""

import asyncio
import logging
from pathlib import Path

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError, CouldntEncodeError
from pydub.utils import make_chunks

from video_insight.errors import AudioExtractionError

logger = logging.getLogger(__name__)

PCM_16_SAMPLE_WIDTH = 2


def audio_path_for(video_path: str | Path, output_dir: str | Path | None = None) -> Path:
    """Return where the WAV extracted from ``video_path`` is written."""
    video = Path(video_path)
    target_dir = Path(output_dir) if output_dir is not None else video.parent
    return target_dir / f"{video.stem}.wav"


def extract_audio_from_video(
    video_path: str | Path,
    output_dir: str | Path | None = None,
) -> Path:
    """
    Extract the audio track of a video as 16-bit PCM WAV.

    Args:
        video_path: Path to the video file.
        output_dir: Directory for the WAV file (default: next to the video).

    Returns:
        Path to the extracted audio file.

    Raises:
        AudioExtractionError: ffmpeg failed to decode or encode the media.
    """
    out_path = audio_path_for(video_path, output_dir)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        audio = AudioSegment.from_file(str(video_path))
        audio.set_sample_width(PCM_16_SAMPLE_WIDTH).export(
            str(out_path), format="wav", codec="pcm_s16le"
        )
    except (CouldntDecodeError, CouldntEncodeError, OSError) as e:
        raise AudioExtractionError(f"Audio extraction failed: {e}") from e

    logger.info("Audio extraction finished: %s", out_path)
    return out_path


async def extract_audio(video_path: str | Path) -> Path:
    """Run the transcoder in a worker thread and return once it is done."""
    return await asyncio.to_thread(extract_audio_from_video, video_path)


def split_audio(
    audio_path: str | Path,
    output_dir: str | Path,
    chunk_length_ms: int = 30_000,
) -> list[Path]:
    """
    Cut a WAV into fixed-length 16-bit PCM chunks for the speech provider.

    Chunks are written as ``<stem>-chunk-NNN.wav`` in ``output_dir``; the last
    one may be shorter than ``chunk_length_ms``.
    """
    source = Path(audio_path)
    target_dir = Path(output_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    audio = AudioSegment.from_file(str(source)).set_sample_width(PCM_16_SAMPLE_WIDTH)
    chunk_paths: list[Path] = []
    for index, chunk in enumerate(make_chunks(audio, chunk_length_ms)):
        chunk_path = target_dir / f"{source.stem}-chunk-{index:03d}.wav"
        chunk.export(str(chunk_path), format="wav", codec="pcm_s16le")
        chunk_paths.append(chunk_path)
    logger.debug("Split %s into %d chunk(s)", source.name, len(chunk_paths))
    return chunk_paths
