"""
Command-Line Interface for piper-tts-server.

Synthesizes without the HTTP server, lists voices, or starts the server.

Usage Examples:
    # Single text synthesis
    piper-server --voice en_US-lessac-medium --text "Hello [pause] world" --out hello.wav

    # Positional text (same as above)
    piper-server -v en_US-lessac-medium "Hello [pause] world" --out hello.wav

    # Batch processing from file (one text per line)
    piper-server -v en_US-lessac-medium --file inputs.txt --out output_dir/

    # Dry-run mode (render markup only, no espeak-ng or model needed)
    piper-server --text "[spell]BBC[/spell]" --dry-run --json

    # List voices
    piper-server --voices

    # Run the HTTP server
    piper-server --serve --port 3000

Environment Variables:
    PIPER_SERVER_SETTINGS: Settings file (default config/settings.yaml)
    PIPER_SERVER_VOICES_DIR: Voices directory
    HOST / PORT: Server bind address for --serve
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from piper_server import __version__
from piper_server.core.config import ConfigValidationError, Settings, load_settings
from piper_server.core.logging import configure_logging, get_logger, info, set_request_id
from piper_server.dsl import process


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="piper-server",
        description="piper-tts-server CLI (serverless synth, voice listing, server)",
    )

    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--file", help="Batch input file (1 line = 1 item)")
    parser.add_argument("-v", "--voice", help="Voice identifier")

    parser.add_argument("--out", help="Output path (file or dir in batch mode)")
    parser.add_argument("--settings", help="Settings file (default: $PIPER_SERVER_SETTINGS or config/settings.yaml)")
    parser.add_argument("--voices-dir", help="Voices directory override")

    parser.add_argument("--dry-run", action="store_true",
                        help="Render markup and summarize without synthesis")
    parser.add_argument("--json", action="store_true",
                        help="Print JSON summary")

    parser.add_argument("--voices", action="store_true",
                        help="List available voices")
    parser.add_argument("--serve", action="store_true",
                        help="Run the HTTP server")
    parser.add_argument("--host", help="Bind host for --serve (default: $HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Bind port for --serve (default: $PORT or 3000)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return parser.parse_args(argv)


def _load_texts(args: argparse.Namespace) -> List[str]:
    """
    Collect input texts from --file, --text or the positional argument.

    Raises:
        SystemExit: If no input is given or options conflict.
    """
    text = args.text or args.text_pos

    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        lines = Path(args.file).read_text(encoding="utf-8").splitlines()
        items = [line.strip() for line in lines if line.strip()]
        if not items:
            raise SystemExit("Input file is empty.")
        return items

    if not text:
        raise SystemExit("Provide --text or a positional text.")
    return [text]


def _resolve_output_paths(args: argparse.Namespace, count: int) -> List[Path]:
    if args.file:
        out_dir = Path(args.out or "out")
        out_dir.mkdir(parents=True, exist_ok=True)
        return [out_dir / f"item_{i + 1:03d}.wav" for i in range(count)]

    out_path = Path(args.out or "out.wav")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    return [out_path]


def _load_settings(args: argparse.Namespace) -> Settings:
    path = args.settings or os.getenv("PIPER_SERVER_SETTINGS", "config/settings.yaml")
    settings = load_settings(path, missing_ok=args.settings is None)
    if args.voices_dir:
        raw = dict(settings.raw)
        raw["voices"] = {**(raw.get("voices") or {}), "dir": args.voices_dir}
        settings = Settings(raw=raw)
    return settings


def _emit(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def _serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    host = args.host or settings.host
    port = args.port or settings.port
    uvicorn.run("piper_server.main:app", host=host, port=port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code: 0 on success, 1 on synthesis failure, 2 on bad input.
    """
    args = _parse_args(argv)

    configure_logging()
    log = get_logger("piper-server.cli")
    set_request_id(str(uuid4())[:12])

    try:
        settings = _load_settings(args)
        settings.get_service_config()
    except (ConfigValidationError, FileNotFoundError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    if args.serve:
        return _serve(args, settings)

    if args.voices:
        from piper_server.tts.voice import list_voices

        voices = [
            {"id": v.id, "name": v.name, "language": v.language}
            for v in list_voices(settings.voices_dir)
        ]
        if args.json:
            print(json.dumps({"voices": voices}, ensure_ascii=False))
        else:
            for v in voices:
                print(f"{v['id']:<32} {v['name']:<16} {v['language']}")
        return 0

    texts = _load_texts(args)

    if args.dry_run:
        items = [
            {"text_len": len(t), "rendered": process(t), "voice": args.voice}
            for t in texts
        ]
        payload = {"ok": True, "dry_run": True, "items": items}
        if not args.json:
            info(log, "dry_run", items=len(texts))
        _emit(payload, args.json)
        print("DRY_RUN_OK")
        return 0

    from piper_server.services.speech_service import SpeechService, TTSError
    from piper_server.services.validators import ValidationError, validate_text, validate_voice

    max_chars = settings.get_service_config().limits.max_text_chars
    try:
        voice = validate_voice(args.voice)
        for t in texts:
            validate_text(t, max_length=max_chars)
    except ValidationError as e:
        print(f"Invalid input: {e.message}", file=sys.stderr)
        return 2

    out_paths = _resolve_output_paths(args, len(texts))
    service = SpeechService(settings)
    results = []
    try:
        for text, out_path in zip(texts, out_paths):
            info(log, "synth_start", chars=len(text), out=str(out_path))
            res = service.speak(text, voice)
            out_path.write_bytes(res.wav_bytes)
            results.append({
                "out": str(out_path),
                "bytes": len(res.wav_bytes),
                "sample_rate": res.sample_rate,
            })
    except TTSError as e:
        _emit({"ok": False, "error": e.code, "message": e.message}, args.json)
        return 1
    finally:
        service.close()

    _emit({"ok": True, "dry_run": False, "items": results}, args.json)
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
