#!/usr/bin/env python3
"""Run the admission checks against NAD and Pod manifests on disk."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Iterator, List, Tuple

import yaml

REPO_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from nad_admission.resources import NAD_KIND  # noqa: E402
from nad_webhook.server import (  # noqa: E402
    review_network_attachment_definition,
    review_pod_isolation,
)


LOG = logging.getLogger(__name__)


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "manifests",
        nargs="+",
        type=Path,
        help="YAML or JSON manifest files (multi-document YAML is supported)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def iter_documents(path: Path) -> Iterator[Tuple[int, Any]]:
    with path.open() as fh:
        for index, document in enumerate(yaml.safe_load_all(fh)):
            if document is not None:
                yield index, document


def check_document(document: Any) -> Tuple[str, bool, str] | None:
    if not isinstance(document, dict):
        return None
    kind = document.get("kind")
    name = (document.get("metadata") or {}).get("name", "<unnamed>")
    if kind == NAD_KIND:
        decision = review_network_attachment_definition(document)
    elif kind == "Pod":
        decision = review_pod_isolation(document)
    else:
        LOG.debug("skipping %s %s", kind, name)
        return None
    return f"{kind}/{name}", decision.allowed, decision.message


def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    denied = 0
    for path in args.manifests:
        for index, document in iter_documents(path):
            result = check_document(document)
            if result is None:
                continue
            label, allowed, message = result
            verdict = "allowed" if allowed else "denied"
            line = f"{path}[{index}] {label}: {verdict}"
            if message:
                line += f" ({message})"
            print(line)
            if not allowed:
                denied += 1

    return 1 if denied else 0


if __name__ == "__main__":
    sys.exit(main())
