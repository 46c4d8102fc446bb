#!/usr/bin/env python3
"""
Run the post ingest pipeline on Micropub request files.

Each file holds one decoded Micropub JSON request, e.g.:

    {"type": ["h-entry"], "properties": {"bookmark-of": ["https://example.com/a"]}}

The enriched request, the assigned kind and any resolution failures are
printed as JSON (or written next to the input with --output-dir).

Usage:
    python scripts/run_pipeline.py request.json --failure-log logs/failures.jsonl
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

from post_kind_engine.core.kinds import InMemoryKindStore, KindAssigner
from post_kind_engine.core.reference_resolver.config import MAX_CONCURRENT_RESOLUTIONS
from post_kind_engine.core.reference_resolver.diagnostics import JsonlDiagnosticsSink, LoggingSink
from post_kind_engine.core.reference_resolver.encoding import get_encoding
from post_kind_engine.core.reference_resolver.pipeline import PostIngestPipeline
from post_kind_engine.core.reference_resolver.resolution_orchestrator import ResolutionOrchestrator
from post_kind_engine.core.reference_resolver.url_resolver import UrlResolver


def build_pipeline(args: argparse.Namespace) -> PostIngestPipeline:
    encoding = get_encoding(args.encoding)
    orchestrator = ResolutionOrchestrator(
        resolver=UrlResolver(use_cache=not args.no_cache),
        encoding=encoding,
        max_workers=args.max_workers,
    )
    sinks = [LoggingSink()]
    if args.failure_log:
        sinks.append(JsonlDiagnosticsSink(args.failure_log))
    return PostIngestPipeline(
        orchestrator=orchestrator,
        kind_assigner=KindAssigner(store=InMemoryKindStore()),
        sinks=sinks,
        encoding=encoding,
    )


def run(paths: List[Path], args: argparse.Namespace) -> int:
    pipeline = build_pipeline(args)
    failed_items = 0

    for i, path in enumerate(paths, 1):
        request = json.loads(path.read_text(encoding="utf-8"))
        result = pipeline.process_request(request, item_id=path.stem)
        output = json.dumps(result.to_dict(), ensure_ascii=False, indent=2)

        if args.output_dir:
            out_dir = Path(args.output_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            (out_dir / f"{path.stem}.result.json").write_text(output, encoding="utf-8")
            kind = result.assignment.kind if result.assignment else "-"
            print(f"[{i}/{len(paths)}] {path.name}: kind={kind} "
                  f"resolved={len(result.resolution.resolved)} failed={len(result.resolution.failures)}")
        else:
            print(output)

        if result.resolution.failures:
            failed_items += 1

    return 1 if (args.strict and failed_items) else 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Resolve references and assign kinds for Micropub requests")
    parser.add_argument("requests", nargs="+", help="Micropub request JSON files")
    parser.add_argument("--encoding", choices=["mf2", "jf2"], default="mf2", help="Encoding of the request properties")
    parser.add_argument("--max-workers", type=int, default=MAX_CONCURRENT_RESOLUTIONS, help="Resolutions in flight per item")
    parser.add_argument("--failure-log", default=None, help="Append failures to this JSON lines file")
    parser.add_argument("--output-dir", default=None, help="Write one result file per request")
    parser.add_argument("--no-cache", action="store_true")
    parser.add_argument("--strict", action="store_true", help="Exit 1 if any reference failed to resolve")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    paths = [Path(p) for p in args.requests]
    missing = [p for p in paths if not p.exists()]
    if missing:
        raise SystemExit(f"Request file not found: {missing[0]}")

    sys.exit(run(paths, args))


if __name__ == "__main__":
    main()
