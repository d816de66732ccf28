#!/usr/bin/env python3
"""
CLI entrypoint for the video insight service.

Usage:
  python3 main.py serve [--host HOST] [--port PORT]
  python3 main.py transcribe <file_path_or_url>

  file_path_or_url: Local video (.mp4, .avi, .mov, .wmv) or a direct/Vimeo link.

Example:
  python3 main.py serve --port 3000
  python3 main.py transcribe lesson_01.mp4
  python3 main.py transcribe "https://vimeo.com/123456789"

GEMINI_API_KEY and SPEECH_API_KEY must be set (environment or .env).
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from video_insight.api import build_services, create_app
from video_insight.config import load_settings
from video_insight.download_utils import is_url
from video_insight.errors import ConfigurationError, classify_error


async def _transcribe(target: str, settings) -> str:
    pipeline = build_services(settings).pipeline
    if is_url(target):
        result = await pipeline.process_remote(target)
    else:
        path = Path(target)
        result = await pipeline.transcribe_upload(path.name, path.read_bytes())
    return result.transcript


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Video insight: transcribe videos and run Gemini text tasks over transcripts."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind address (default: HOST or 0.0.0.0)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: PORT or 3000)")

    transcribe = sub.add_parser("transcribe", help="Transcribe one video file or URL")
    transcribe.add_argument("file_path", help="Path to a video file, or a direct/Vimeo URL")

    args = parser.parse_args()

    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(level=settings.log_level)

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            create_app(settings),
            host=args.host or settings.host,
            port=args.port or settings.port,
        )
        return 0

    try:
        transcript = asyncio.run(_transcribe(args.file_path, settings))
    except Exception as e:
        print("Failed:", classify_error(e).message, file=sys.stderr)
        return 1
    print(transcript)
    return 0


if __name__ == "__main__":
    sys.exit(main())
