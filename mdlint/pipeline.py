from __future__ import annotations
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import os

from mdlint.extract import parse_document
from mdlint.fences import validate_document
from mdlint.ir import Document, Finding
from mdlint.report import Report
from mdlint.resolve import Corpus, resolve_links
from mdlint.rules.load_rules import (
    DiscoveryRules,
    load_discovery_rules,
    load_fence_rules,
    load_rule_pack,
)

logger = logging.getLogger(__name__)


class LintInputError(Exception):
    """The run cannot start or continue: bad root, no Markdown files, unreadable file."""


@dataclass
class LintConfig:
    ignore_unknown_tags: bool = False
    exclude: Sequence[str] = field(default_factory=list)
    rules_path: Optional[str] = None


def _excluded(rel: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch(rel, p) for p in patterns)


def discover_files(
    root: Path,
    discovery: DiscoveryRules,
    exclude: Sequence[str] = (),
) -> Tuple[List[str], List[str]]:
    """
    Walk the root once.

    Returns (markdown paths to lint, every regular file seen), both as sorted
    POSIX paths relative to root. Excluded Markdown files are still known
    files, so links to them resolve.
    """
    def _fail(err: OSError) -> None:
        raise LintInputError(f"Cannot read directory {err.filename}: {err.strerror}")

    markdown: List[str] = []
    known: List[str] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_fail):
        dirnames[:] = sorted(d for d in dirnames if d not in discovery.skip_dirs)
        for name in sorted(filenames):
            rel = Path(dirpath, name).relative_to(root).as_posix()
            known.append(rel)
            if name.lower().endswith(discovery.extensions) and not _excluded(rel, exclude):
                markdown.append(rel)
    return sorted(markdown), sorted(known)


def read_documents(root: Path, paths: Sequence[str]) -> Dict[str, str]:
    texts: Dict[str, str] = {}
    for rel in paths:
        try:
            texts[rel] = (root / rel).read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as e:
            raise LintInputError(f"Cannot decode {rel} as UTF-8: {e.reason}") from e
        except OSError as e:
            raise LintInputError(f"Cannot read {rel}: {e.strerror or e}") from e
    return texts


def lint_documents(
    texts: Dict[str, str],
    config: Optional[LintConfig] = None,
    known_files: Sequence[str] = (),
) -> Report:
    """Lint already-read documents keyed by relative path."""
    config = config or LintConfig()
    pack = load_rule_pack(config.rules_path)
    fence_rules = load_fence_rules(pack)

    documents: List[Document] = []
    findings: List[Finding] = []

    # Per-document phase
    for path in sorted(texts):
        doc = parse_document(path, texts[path])
        documents.append(doc)
        findings.extend(doc.findings)
        findings.extend(validate_document(doc, fence_rules, config.ignore_unknown_tags))
    logger.info(f"Extracted {sum(len(d.blocks) for d in documents)} blocks from {len(documents)} documents")

    # Corpus phase: only after every document is extracted
    corpus = Corpus.build(documents, known_files)
    logger.info(f"Anchor index holds {len(corpus.anchors)} headings")
    findings.extend(resolve_links(corpus))

    return Report.from_findings(findings, documents_checked=len(documents))


def run_lint(root: str, config: Optional[LintConfig] = None) -> Report:
    config = config or LintConfig()
    root_path = Path(root)
    if not root_path.exists():
        raise LintInputError(f"Root directory does not exist: {root}")
    if not root_path.is_dir():
        raise LintInputError(f"Root is not a directory: {root}")

    discovery = load_discovery_rules(load_rule_pack(config.rules_path))
    markdown, known = discover_files(root_path, discovery, config.exclude)
    if not markdown:
        raise LintInputError(f"No Markdown files found under {root}")
    logger.info(f"Found {len(markdown)} Markdown files ({len(known)} files total) under {root}")

    texts = read_documents(root_path, markdown)
    return lint_documents(texts, config, known_files=known)
