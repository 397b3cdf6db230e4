#!/usr/bin/env python3
"""
Video Transcript Indexer v1.0.0 — Main entry point.
Runs the intake listener by default; the other subcommands are one-off
maintenance tools against the same database.
"""

import sys
import argparse
import logging
from pathlib import Path
from datetime import datetime

# ── Determine project root ────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from vidindex.core.constants import APP_DISPLAY_NAME, APP_VERSION, DEFAULT_SEARCH_LIMIT
from vidindex.core.config import AppConfig
from vidindex.core.db import Database
from vidindex.core.diagnostics import get_diagnostics, missing_tools
from vidindex.core.error_codes import JobError
from vidindex.core.security_utils import mask_secret

logger = logging.getLogger("vidindex")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(log_file: str = "", verbose: bool = False):
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
    )


def check_prerequisites() -> bool:
    """Check that yt-dlp, ffmpeg and ffprobe are available."""
    diagnostics = get_diagnostics()
    missing = missing_tools(diagnostics)
    if missing:
        logger.error("Missing required tools: %s", ", ".join(missing))
        return False
    logger.info("yt-dlp: %s", diagnostics["ytdlp_version"])
    logger.info("ffmpeg: %s", diagnostics["ffmpeg_version"])
    return True


# ── Provider wiring ───────────────────────────────────────────────────

def build_transcriber(config: AppConfig):
    from vidindex.core.transcribe_lemonfox import LemonfoxTranscriber
    logger.info("Lemonfox API key: %s", mask_secret(config.get('lemonfox_api_key')))
    return LemonfoxTranscriber(
        api_key=config.get('lemonfox_api_key'),
        api_url=config.get('transcription_url'),
        language=config.get('transcription_language'),
        base_timeout=config.get('http_timeout_sec'),
    )


def build_embedder(config: AppConfig):
    from vidindex.core.embeddings import OpenAIEmbedder
    logger.info("OpenAI API key: %s", mask_secret(config.get('openai_api_key')))
    return OpenAIEmbedder(
        api_key=config.get('openai_api_key'),
        model=config.get('embedding_model'),
        timeout=config.get('http_timeout_sec'),
    )


def build_pipeline(config: AppConfig, db: Database):
    from vidindex.core.pipeline import VideoPipeline
    return VideoPipeline(
        db,
        transcriber=build_transcriber(config),
        embedder=build_embedder(config),
        config=config.as_dict(),
    )


# ── Commands ──────────────────────────────────────────────────────────

def cmd_listen(args, config: AppConfig) -> int:
    from vidindex.core.listener import IntakeListener

    if not check_prerequisites():
        return 1

    db = Database(config.database_path)
    logger.info("Database: %s", db.db_path)
    listener = IntakeListener(
        db,
        build_pipeline(config, db),
        channel=config.get('listen_channel'),
        ping_interval=config.get('ping_interval_sec'),
        poll_interval=config.get('poll_interval_sec'),
    )
    try:
        listener.run()
    except KeyboardInterrupt:
        listener.stop()
        logger.info("Interrupted, shutting down")
    finally:
        db.close()
    return 0


def cmd_submit(args, config: AppConfig) -> int:
    db = Database(config.database_path)
    try:
        video = db.create_video(args.url, is_searchable=args.searchable,
                                user_id=args.user_id)
    finally:
        db.close()
    print(video.id)
    return 0


def cmd_transcribe(args, config: AppConfig) -> int:
    from vidindex.core.transcription import transcribe_path

    print(transcribe_path(Path(args.path), build_transcriber(config)))
    return 0


def cmd_reindex(args, config: AppConfig) -> int:
    db = Database(config.database_path)
    try:
        _, failed = build_pipeline(config, db).reindex_pending()
    finally:
        db.close()
    return 1 if failed else 0


def cmd_search(args, config: AppConfig) -> int:
    embedder = build_embedder(config)
    db = Database(config.database_path)
    try:
        results = db.search_chunks(embedder.embed(args.query), limit=args.limit)
    finally:
        db.close()

    for r in results:
        print(f"{r.similarity:.4f}  {r.video_id}  "
              f"[{r.chunk_start:g}-{r.chunk_end:g} {r.chunk_unit}]  {r.chunk_text}")
    if not results:
        print("No results.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vidindex", description=APP_DISPLAY_NAME)
    parser.add_argument("--config", type=Path, default=None, help="Path to config JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("listen", help="Process new videos as they are submitted (default)")

    p = sub.add_parser("submit", help="Create a pending video")
    p.add_argument("url")
    p.add_argument("--searchable", action="store_true")
    p.add_argument("--user-id", default=None)

    p = sub.add_parser("transcribe", help="Transcribe a local audio file and print WebVTT")
    p.add_argument("path")

    sub.add_parser("reindex", help="Re-chunk searchable videos that were never indexed")

    p = sub.add_parser("search", help="Semantic search over indexed transcripts")
    p.add_argument("query")
    p.add_argument("--limit", type=int, default=DEFAULT_SEARCH_LIMIT)

    return parser


COMMANDS = {
    "listen": cmd_listen,
    "submit": cmd_submit,
    "transcribe": cmd_transcribe,
    "reindex": cmd_reindex,
    "search": cmd_search,
}


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = AppConfig(args.config) if args.config else AppConfig()
    setup_logging(config.get('log_file'), args.verbose)

    command = args.command or "listen"
    logger.info("%s v%s %s at %s", APP_DISPLAY_NAME, APP_VERSION, command,
                datetime.now().isoformat())

    try:
        return COMMANDS[command](args, config)
    except (JobError, ValueError) as e:
        logger.error("%s failed: %s", command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
