"""Primary CLI entrypoints for document analysis, quota inspection, and rasterization."""

from __future__ import annotations

import argparse
import asyncio
import base64
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from paperlens.core.errors import DecodeError, Failure, RenderError
from paperlens.core.rasterizer import load_document, rasterize_pdf
from paperlens.core.settings import Settings, load_settings
from paperlens.db.usage_log_store import SQLiteUsageLogStore
from paperlens.services.analysis import PaperAnalyzer
from paperlens.services.quota import QuotaTracker
from paperlens.services.session import AnalysisSessionController, RunOutcome


def _settings(args: argparse.Namespace) -> Settings:
    settings = load_settings(Path(args.config) if getattr(args, "config", None) else None)
    max_pages = getattr(args, "max_pages", None)
    if max_pages:
        settings = dataclasses.replace(settings, max_pages=int(max_pages))
    return settings


def build_quota_tracker(settings: Settings) -> QuotaTracker:
    """Build the quota tracker over the local SQLite usage log."""
    return QuotaTracker(SQLiteUsageLogStore(settings.usage_db_path))


def build_controller(settings: Settings) -> AnalysisSessionController:
    """Wire the session controller with the LLM analyzer and local quota."""
    return AnalysisSessionController.from_settings(
        settings,
        PaperAnalyzer(settings),
        build_quota_tracker(settings),
    )


def _describe_failure(failure: Optional[Failure]) -> str:
    if failure is None:
        return "Unknown failure."
    text = f"[{failure.kind.value}] {failure.message}".strip()
    if failure.wait_seconds:
        text += f" (retry in {failure.wait_seconds}s)"
    return text


def _read_text_input(args: argparse.Namespace) -> str:
    if args.text is not None:
        return str(args.text)
    if args.text_file == "-":
        return sys.stdin.read()
    return Path(args.text_file).read_text(encoding="utf-8", errors="replace")


async def _analyze(controller: AnalysisSessionController, args: argparse.Namespace) -> Dict[str, Any]:
    if args.pdf:
        documents = [load_document(Path(path)) for path in args.pdf]
        outcome = await controller.start_file_analysis(documents)
    else:
        outcome = await controller.start_text_analysis(_read_text_input(args))
    payload: Dict[str, Any] = {"outcome": outcome}
    if not outcome.ok or controller.analysis is None:
        return payload
    answers: List[Dict[str, Any]] = []
    for question in args.ask or []:
        chat_outcome = await controller.submit_chat_query(question)
        answer = controller.messages[-1].content if chat_outcome.ok else ""
        answers.append(
            {
                "question": question,
                "answer": answer,
                "error": None if chat_outcome.ok else _describe_failure(chat_outcome.failure),
            }
        )
    payload["analysis"] = controller.analysis.model_dump()
    payload["answers"] = answers
    payload["documents"] = [
        {
            "total_pages": result.total_pages,
            "processed_pages": result.processed_pages,
            "truncated": result.truncated,
            "skipped_pages": result.skipped_pages,
        }
        for result in controller.last_rasterization
    ]
    return payload


def cmd_analyze(args: argparse.Namespace) -> int:
    """Analyze pasted text or PDFs and optionally ask follow-up questions.

    Args:
        args (argparse.Namespace): Parsed CLI args.

    Returns:
        int: Process return code.
    """
    if not args.pdf and args.text is None and not args.text_file:
        print("Provide --text, --text-file, or at least one --pdf.")
        return 1
    settings = _settings(args)
    controller = build_controller(settings)
    try:
        payload = asyncio.run(_analyze(controller, args))
    except FileNotFoundError as exc:
        print(f"File not found: {exc}")
        return 1
    except OSError as exc:
        print(f"Unable to read input: {exc}")
        return 1
    outcome: RunOutcome = payload.pop("outcome")
    if not outcome.ok:
        print(f"Analysis failed: {_describe_failure(outcome.failure)}")
        return 1
    body = json.dumps(payload, indent=2, ensure_ascii=False)
    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(body + "\n", encoding="utf-8")
        print(f"Wrote analysis to {out_path}")
    else:
        print(body)
    return 0 if all(item["error"] is None for item in payload["answers"]) else 1


def cmd_quota(args: argparse.Namespace) -> int:
    """Print remaining quota and whether a request would be allowed now.

    Args:
        args (argparse.Namespace): Parsed CLI args.

    Returns:
        int: Process return code.
    """
    tracker = build_quota_tracker(_settings(args))
    remaining = tracker.remaining_quota()
    decision = tracker.check_limit()
    if args.json:
        print(
            json.dumps(
                {
                    "remaining": dataclasses.asdict(remaining),
                    "allowed": decision.allowed,
                    "reason": decision.reason,
                    "wait_seconds": decision.wait_seconds,
                }
            )
        )
        return 0
    print(f"Remaining this hour: {remaining.hour}")
    print(f"Remaining today: {remaining.day}")
    print("Next request: allowed" if decision.allowed else f"Next request: blocked ({decision.reason})")
    return 0


def cmd_rasterize(args: argparse.Namespace) -> int:
    """Render a PDF's pages to JPEG files.

    Args:
        args (argparse.Namespace): Parsed CLI args.

    Returns:
        int: Process return code.
    """
    settings = _settings(args)
    try:
        document = load_document(Path(args.pdf))
    except FileNotFoundError as exc:
        print(f"File not found: {exc}")
        return 1
    except OSError as exc:
        print(f"Unable to read input: {exc}")
        return 1
    try:
        result = rasterize_pdf(
            document,
            max_pages=settings.max_pages,
            dpi=settings.render_dpi,
            quality=settings.jpeg_quality,
        )
    except (DecodeError, RenderError) as exc:
        print(f"Rasterization failed: {exc}")
        return 1
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    stem = Path(document.name).stem
    for idx, image in enumerate(result.page_images, start=1):
        (out_dir / f"{stem}-{idx:03d}.jpg").write_bytes(base64.b64decode(image))
    print(
        f"Wrote {len(result.page_images)} page image(s) to {out_dir} "
        f"({result.processed_pages}/{result.total_pages} pages processed"
        f"{', truncated' if result.truncated else ''})"
    )
    if result.skipped_pages:
        print(f"Skipped pages: {', '.join(str(page) for page in result.skipped_pages)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser.
    """
    p = argparse.ArgumentParser(prog="paperlens")
    p.add_argument("--config", type=str, default=None, help="Path to a TOML config file")
    sub = p.add_subparsers(dest="cmd", required=True)

    a = sub.add_parser("analyze", help="Analyze pasted text or PDF documents")
    source = a.add_mutually_exclusive_group()
    source.add_argument("--text", type=str, default=None)
    source.add_argument("--text-file", type=str, default=None, help="Text file to analyze ('-' for stdin)")
    source.add_argument("--pdf", action="append", default=[], help="PDF to analyze, repeatable")
    a.add_argument("--ask", action="append", default=[], help="Follow-up question, repeatable")
    a.add_argument("--max-pages", type=int, default=None)
    a.add_argument("--out", type=str, default=None)
    a.set_defaults(func=cmd_analyze)

    q = sub.add_parser("quota", help="Show remaining local usage quota")
    q.add_argument("--json", action="store_true")
    q.set_defaults(func=cmd_quota)

    r = sub.add_parser("rasterize", help="Render PDF pages to JPEG files")
    r.add_argument("--pdf", type=str, required=True)
    r.add_argument("--out-dir", type=str, required=True)
    r.add_argument("--max-pages", type=int, default=None)
    r.set_defaults(func=cmd_rasterize)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint for paperlens.

    Returns:
        int: Process return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
