import json
from pathlib import Path

from cli import main
from settings import get_settings, reload_settings


ROOT = Path(__file__).resolve().parent.parent
SAMPLES = ROOT / "sample_data"


def test_classify_command(capsys):
    assert main(["classify", "--text", str(SAMPLES / "form_1099_int.txt")]) == 0
    output = json.loads(capsys.readouterr().out)
    assert output["document_type"] == "FORM_1099_INT"
    assert output["scores"]["FORM_1099_INT"] == 5


def test_reconcile_command_prints_field_set(capsys):
    code = main(["reconcile", "--analysis", str(SAMPLES / "form_1099_int_analysis.json"), "--type", "1099-INT"])
    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["document_type"] == "FORM_1099_INT"
    assert output["fields"]["earlyWithdrawalPenalty"] == 0.0
    assert output["sources"]["interestOnUSavingsBonds"] == "ocr_override"
    assert "corrected_document_type" not in output
    assert output["metrics"]["states"][-1] == "DONE"


def test_reconcile_command_entries(capsys):
    code = main(
        ["reconcile", "--analysis", str(SAMPLES / "w2_analysis.json"), "--type", "W2", "--entries"]
    )
    assert code == 0
    entries = json.loads(capsys.readouterr().out)
    assert entries[0]["field"] == "employerName"
    wages = next(entry for entry in entries if entry["field"] == "wages")
    assert wages["label"] == "Box 1 - Wages, Tips, Other Compensation"
    assert wages["value"] == 65000.0
    tips = next(entry for entry in entries if entry["field"] == "allocatedTips")
    assert tips["value"] == 0.0


def test_reconcile_command_reports_fatal_errors(tmp_path, capsys):
    recording = tmp_path / "empty.json"
    recording.write_text(json.dumps({"models": {}}), encoding="utf-8")
    assert main(["reconcile", "--analysis", str(recording), "--type", "FORM_1099_R"]) == 1
    assert "Extraction failed" in capsys.readouterr().err


def test_extract_command_requires_configuration(tmp_path, monkeypatch, capsys):
    for name in (
        "DOCINTEL_ENDPOINT",
        "DOCINTEL_API_KEY",
        "AZURE_DOCUMENT_INTELLIGENCE_ENDPOINT",
        "AZURE_DOCUMENT_INTELLIGENCE_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    reload_settings()
    document = tmp_path / "doc.pdf"
    document.write_bytes(b"%PDF-1.7")
    try:
        assert main(["extract", "--file", str(document), "--type", "W2"]) == 1
        assert "DOCINTEL_ENDPOINT" in capsys.readouterr().err
    finally:
        get_settings.cache_clear()
