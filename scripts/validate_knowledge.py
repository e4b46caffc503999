#!/usr/bin/env python3
"""
Check the Senan knowledge base before deploying it.

Usage
-----
Validate data/ (or DATA_DIR from .env):
    python scripts/validate_knowledge.py

Validate another directory, and fail the run on any problem:
    python scripts/validate_knowledge.py path/to/data --strict

Background
----------
The bot loads every *.json file in the data directory through the same typed
loader used here (senan.knowledge.KnowledgeStore). Records that fail
validation are skipped at runtime with a warning in the log, so a typo in a
field name silently drops a FAQ entry. Run this after editing the JSON files
to see exactly what the bot will and won't load.

Reports, per file: documents loaded, records rejected (with index and
reason). Across files: duplicate document ids, which make citations
ambiguous.
"""

import argparse
import os
import sys
from collections import Counter, defaultdict

# Make sure project root is on the path so we can import senan/
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from senan.config import Settings
from senan.knowledge import KnowledgeStore


# ── Checks ────────────────────────────────────────────────────────────────────

def validate(data_dir: str) -> dict:
    """Load every knowledge file and collect counts, rejections and duplicate ids."""
    store = KnowledgeStore(data_dir)
    report = {"files": [], "duplicates": {}, "documents": 0, "rejected": 0}
    seen = defaultdict(list)

    for path in store.knowledge_files():
        name = os.path.basename(path)
        documents, rejected = store.load_file(path)
        for doc in documents:
            seen[doc.id].append(name)
        report["files"].append({
            "name": name,
            "documents": len(documents),
            "categories": Counter(d.category for d in documents),
            "rejected": rejected,
        })
        report["documents"] += len(documents)
        report["rejected"] += len(rejected)

    report["duplicates"] = {doc_id: files for doc_id, files in seen.items() if len(files) > 1}
    return report


# ── Output ────────────────────────────────────────────────────────────────────

def print_report(report: dict, data_dir: str) -> None:
    print(f"Knowledge base: {data_dir}\n")
    if not report["files"]:
        print("No knowledge files found.")
        return

    for entry in report["files"]:
        categories = ", ".join(f"{c}={n}" for c, n in sorted(entry["categories"].items())) or "none"
        print(f"{entry['name']}: {entry['documents']} document(s) [{categories}]")
        for index, reason in entry["rejected"]:
            where = "whole file" if index is None else f"record {index}"
            print(f"  [REJECTED] {where}: {reason}")

    if report["duplicates"]:
        print("\nDuplicate ids:")
        for doc_id, files in sorted(report["duplicates"].items()):
            print(f"  {doc_id}: {', '.join(files)}")

    print(
        f"\n{report['documents']} document(s) loaded | "
        f"{report['rejected']} rejected | {len(report['duplicates'])} duplicate id(s)"
    )


# ── Entry point ───────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(
        description="Validate the Senan JSON knowledge base.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "data_dir",
        nargs="?",
        default=None,
        help="Directory holding the knowledge *.json files (default: DATA_DIR or data/).",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 if any record is rejected or any id is duplicated.",
    )
    args = parser.parse_args()

    data_dir = args.data_dir or Settings.from_env().data_dir
    report = validate(data_dir)
    print_report(report, data_dir)

    if args.strict and (report["rejected"] or report["duplicates"]):
        sys.exit(1)


if __name__ == "__main__":
    main()
