"""Tests for CLI argument handling and command output."""

from __future__ import annotations

import base64
import json
import time

import paperlens.cli.entrypoints as entrypoints
from paperlens.core.rasterizer import RasterizationResult
from paperlens.core.settings import Settings
from paperlens.db.usage_log_store import SQLiteUsageLogStore
from paperlens.services.quota import InMemoryUsageLogStore, QuotaTracker, UsageKind, UsageLogEntry
from paperlens.services.schemas import PaperAnalysis
from paperlens.services.session import AnalysisSessionController


def _settings(tmp_path) -> Settings:
    return Settings(
        state_dir=tmp_path,
        llm_provider="openai",
        chat_model="m",
        analysis_model="m",
        max_pages=10,
        render_dpi=108,
        jpeg_quality=80,
        analysis_temperature=0.2,
        max_output_tokens=1000,
    )


class _FakeCollaborator:
    async def analyze(self, *, text=None, images=None) -> PaperAnalysis:
        return PaperAnalysis(paper_title="CLI Paper", core_hypothesis="H", methodology_summary="M")

    async def chat(self, analysis, question, transcript) -> str:
        return f"{analysis.paper_title}: {question}"


def test_parser_accepts_repeated_pdfs_and_questions() -> None:
    args = entrypoints.build_parser().parse_args(
        ["analyze", "--pdf", "a.pdf", "--pdf", "b.pdf", "--ask", "q1", "--ask", "q2", "--max-pages", "5"]
    )
    assert args.pdf == ["a.pdf", "b.pdf"]
    assert args.ask == ["q1", "q2"]
    assert args.max_pages == 5


def test_analyze_without_source_fails(capsys) -> None:
    assert entrypoints.main(["analyze"]) == 1
    assert "Provide --text" in capsys.readouterr().out


def test_quota_json_reports_remaining(tmp_path, monkeypatch, capsys) -> None:
    settings = _settings(tmp_path)
    monkeypatch.setattr(entrypoints, "load_settings", lambda path=None: settings)
    SQLiteUsageLogStore(settings.usage_db_path).save(
        [UsageLogEntry(timestamp=time.time() - 5, kind=UsageKind.PDF)]
    )

    assert entrypoints.main(["quota", "--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["remaining"] == {"hour": 4, "day": 19}
    assert payload["allowed"] is False
    assert payload["wait_seconds"] in (5, 6)


def test_analyze_text_writes_output_file(tmp_path, monkeypatch, capsys) -> None:
    settings = _settings(tmp_path)
    monkeypatch.setattr(entrypoints, "load_settings", lambda path=None: settings)
    monkeypatch.setattr(
        entrypoints,
        "build_controller",
        lambda s: AnalysisSessionController(_FakeCollaborator(), QuotaTracker(InMemoryUsageLogStore())),
    )
    out = tmp_path / "out" / "analysis.json"

    code = entrypoints.main(["analyze", "--text", "paper body", "--ask", "Why?", "--out", str(out)])

    assert code == 0
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["analysis"]["paper_title"] == "CLI Paper"
    assert payload["answers"] == [{"question": "Why?", "answer": "CLI Paper: Why?", "error": None}]
    assert payload["documents"] == []
    assert "Wrote analysis" in capsys.readouterr().out


def test_analyze_reports_quota_denial(tmp_path, monkeypatch, capsys) -> None:
    settings = _settings(tmp_path)
    monkeypatch.setattr(entrypoints, "load_settings", lambda path=None: settings)
    store = InMemoryUsageLogStore([UsageLogEntry(timestamp=time.time(), kind=UsageKind.TEXT)])
    monkeypatch.setattr(
        entrypoints,
        "build_controller",
        lambda s: AnalysisSessionController(_FakeCollaborator(), QuotaTracker(store)),
    )

    assert entrypoints.main(["analyze", "--text", "paper body"]) == 1
    assert "quota_exceeded" in capsys.readouterr().out


def test_analyze_missing_pdf_fails(tmp_path, monkeypatch, capsys) -> None:
    settings = _settings(tmp_path)
    monkeypatch.setattr(entrypoints, "load_settings", lambda path=None: settings)
    monkeypatch.setattr(
        entrypoints,
        "build_controller",
        lambda s: AnalysisSessionController(_FakeCollaborator(), QuotaTracker(InMemoryUsageLogStore())),
    )

    assert entrypoints.main(["analyze", "--pdf", str(tmp_path / "missing.pdf")]) == 1
    assert "File not found" in capsys.readouterr().out


def test_directory_passed_as_pdf_is_reported(tmp_path, monkeypatch, capsys) -> None:
    settings = _settings(tmp_path)
    monkeypatch.setattr(entrypoints, "load_settings", lambda path=None: settings)
    monkeypatch.setattr(
        entrypoints,
        "build_controller",
        lambda s: AnalysisSessionController(_FakeCollaborator(), QuotaTracker(InMemoryUsageLogStore())),
    )
    folder = tmp_path / "papers"
    folder.mkdir()

    assert entrypoints.main(["analyze", "--pdf", str(folder)]) == 1
    assert "Unable to read input" in capsys.readouterr().out
    assert entrypoints.main(["rasterize", "--pdf", str(folder), "--out-dir", str(tmp_path / "pages")]) == 1
    assert "Unable to read input" in capsys.readouterr().out


def test_rasterize_writes_numbered_jpegs(tmp_path, monkeypatch, capsys) -> None:
    settings = _settings(tmp_path)
    monkeypatch.setattr(entrypoints, "load_settings", lambda path=None: settings)
    captured = {}

    def _fake_rasterize(document, *, max_pages, dpi, quality):
        captured.update(name=document.name, max_pages=max_pages, dpi=dpi, quality=quality)
        page = base64.b64encode(b"\xff\xd8fake").decode("ascii")
        return RasterizationResult(page_images=[page, page], total_pages=4, processed_pages=2, truncated=True)

    monkeypatch.setattr(entrypoints, "rasterize_pdf", _fake_rasterize)
    pdf = tmp_path / "paper.pdf"
    pdf.write_bytes(b"%PDF-1.4")
    out_dir = tmp_path / "pages"

    code = entrypoints.main(["rasterize", "--pdf", str(pdf), "--out-dir", str(out_dir), "--max-pages", "2"])

    assert code == 0
    assert captured == {"name": "paper.pdf", "max_pages": 2, "dpi": 108, "quality": 80}
    assert sorted(p.name for p in out_dir.iterdir()) == ["paper-001.jpg", "paper-002.jpg"]
    assert (out_dir / "paper-001.jpg").read_bytes() == b"\xff\xd8fake"
    assert "truncated" in capsys.readouterr().out
