#!/usr/bin/env python3
"""
Resolve single URLs and print the jf2 document (or the failure) for each.

Usage:
    python scripts/resolve_url.py https://example.com/post --no-cache
"""

import argparse
import json
import logging

from post_kind_engine.core.reference_resolver.citation import downgrade
from post_kind_engine.core.reference_resolver.url_resolver import UrlResolver


def main() -> None:
    parser = argparse.ArgumentParser(description="Fetch and classify URLs")
    parser.add_argument("urls", nargs="+")
    parser.add_argument("--cite", action="store_true", help="Show the document as it would be embedded")
    parser.add_argument("--no-cache", action="store_true")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))

    resolver = UrlResolver(use_cache=not args.no_cache)
    for url in args.urls:
        outcome = resolver.resolve(url)
        print(f"\n=== {url}")
        if outcome.ok:
            document = downgrade(outcome.document) if args.cite else outcome.document
            print(json.dumps(document, ensure_ascii=False, indent=2))
        else:
            print(f"FAILED [{outcome.reason.value}] {outcome.message}")


if __name__ == "__main__":
    main()
