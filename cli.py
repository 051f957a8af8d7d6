"""Command-line entry point for classification and extraction runs."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from engine import ExtractionEngine, ExtractionError
from extraction.classifier import classify, score_document_types
from reconciliation.presentation import to_entries
from registry import default_registry
from schemas.document_types import DocumentTypeId
from service.azure import AzureDocumentIntelligenceClient
from service.client import RecordedAnalysisClient
from settings import ConfigurationError, get_settings


TYPE_CHOICES = [t.value for t in DocumentTypeId if t != DocumentTypeId.UNKNOWN]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Tax form field extraction and reconciliation.")
    sub = parser.add_subparsers(dest="command", required=True)

    classify_cmd = sub.add_parser("classify", help="Detect the document type of an OCR transcript.")
    classify_cmd.add_argument("--text", required=True, help="Path to a UTF-8 text file.")

    reconcile_cmd = sub.add_parser("reconcile", help="Run the pipeline against a recorded analysis JSON.")
    reconcile_cmd.add_argument("--analysis", required=True, help="Recorded analysis JSON file.")
    reconcile_cmd.add_argument("--type", required=True, help=f"Declared document type ({', '.join(TYPE_CHOICES)}).")
    reconcile_cmd.add_argument("--target-name", default=None, help="Taxpayer name to select among several records.")
    reconcile_cmd.add_argument("--entries", action="store_true", help="Print labelled entries instead of the field set.")

    extract_cmd = sub.add_parser("extract", help="Analyze a document with Azure Document Intelligence.")
    extract_cmd.add_argument("--file", required=True, help="Document to analyze (PDF or image).")
    extract_cmd.add_argument("--type", required=True, help="Declared document type.")
    extract_cmd.add_argument("--target-name", default=None, help="Taxpayer name to select among several records.")
    extract_cmd.add_argument("--entries", action="store_true", help="Print labelled entries instead of the field set.")
    return parser.parse_args(argv)


def _print_result(field_set, entries: bool) -> None:
    if entries:
        profile = default_registry().resolve(field_set.document_type)
        payload = to_entries(field_set, profile, include_defaults=True)
    else:
        payload = field_set.to_dict()
    print(json.dumps(payload, indent=2, default=str))


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=get_settings().log_level)

    if args.command == "classify":
        text = Path(args.text).read_text(encoding="utf-8")
        detected = classify(text)
        scores = {doc_type.value: score for doc_type, score in score_document_types(text).items() if score}
        print(json.dumps({"document_type": detected.value, "scores": scores}, indent=2))
        return 0

    try:
        if args.command == "reconcile":
            client = RecordedAnalysisClient.from_file(args.analysis)
            document_bytes = b""
        else:
            client = AzureDocumentIntelligenceClient.from_settings()
            document_bytes = Path(args.file).read_bytes()
        field_set = ExtractionEngine(client).extract(document_bytes, args.type, target_name=args.target_name)
    except (ExtractionError, ConfigurationError) as exc:
        print(f"Extraction failed: {exc}", file=sys.stderr)
        return 1

    _print_result(field_set, args.entries)
    return 0


if __name__ == "__main__":
    sys.exit(main())
