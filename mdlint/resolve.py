"""
Cross-Reference Resolver

Checks every link in the corpus against the anchor index and the set of
known files. Runs only after every document has been extracted; the
Corpus it receives is never mutated, so the same input always yields the
same findings.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import unquote
import logging
import posixpath
import re

from mdlint.ir import Category, Document, Finding, Heading, Link, Severity

logger = logging.getLogger(__name__)

SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")
LABEL_SPACE_RE = re.compile(r"\s+")


class AnchorIndex:
    """Read-only map of (document path, slug) -> Heading for the whole run."""

    def __init__(self, entries: Mapping[Tuple[str, str], Heading]):
        self._entries = MappingProxyType(dict(entries))
        by_path: Dict[str, set] = {}
        for path, slug in self._entries:
            by_path.setdefault(path, set()).add(slug)
        self._by_path = MappingProxyType({p: frozenset(s) for p, s in by_path.items()})

    @classmethod
    def build(cls, documents: Iterable[Document]) -> "AnchorIndex":
        entries: Dict[Tuple[str, str], Heading] = {}
        for doc in documents:
            for heading in doc.headings():
                entries[(doc.path, heading.slug)] = heading
        return cls(entries)

    def has(self, path: str, slug: str) -> bool:
        return (path, slug) in self._entries

    def get(self, path: str, slug: str) -> Optional[Heading]:
        return self._entries.get((path, slug))

    def slugs_for(self, path: str) -> FrozenSet[str]:
        return self._by_path.get(path, frozenset())

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class Corpus:
    """Everything the resolver may look at, fixed before resolution starts."""
    documents: Mapping[str, Document]
    anchors: AnchorIndex
    known_files: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def build(cls, documents: Iterable[Document], known_files: Iterable[str] = ()) -> "Corpus":
        docs = {d.path: d for d in documents}
        files = frozenset(known_files) | frozenset(docs)
        return cls(
            documents=MappingProxyType(docs),
            anchors=AnchorIndex.build(docs.values()),
            known_files=files,
        )

    def is_directory(self, path: str) -> bool:
        if path in ("", "."):
            return True
        prefix = path.rstrip("/") + "/"
        return any(f.startswith(prefix) for f in self.known_files)


def is_external(target: str) -> bool:
    return target.startswith("//") or bool(SCHEME_RE.match(target))


def normalize_label(label: str) -> str:
    return LABEL_SPACE_RE.sub(" ", label.strip()).lower()


def _split_target(target: str) -> Tuple[str, Optional[str]]:
    if "#" in target:
        file_part, fragment = target.split("#", 1)
    else:
        file_part, fragment = target, None
    file_part = file_part.split("?", 1)[0]
    return unquote(file_part), (unquote(fragment) if fragment is not None else None)


def _join(doc_path: str, file_part: str) -> Optional[str]:
    """Resolve a relative file reference; None if it leaves the root."""
    if file_part.startswith("/"):
        joined = file_part.lstrip("/")
    else:
        joined = posixpath.join(posixpath.dirname(doc_path), file_part)
    normalized = posixpath.normpath(joined) if joined else "."
    if normalized == ".." or normalized.startswith("../"):
        return None
    return normalized


def _fragment_ok(corpus: Corpus, path: str, fragment: Optional[str]) -> bool:
    if not fragment:
        return True
    return corpus.anchors.has(path, fragment.lower())


def target_resolves(target: str, doc_path: str, corpus: Corpus) -> bool:
    """True when a link target points at something that exists in the corpus."""
    if not target:
        return False
    if is_external(target):
        return True

    file_part, fragment = _split_target(target)
    if not file_part:
        return _fragment_ok(corpus, doc_path, fragment)

    resolved = _join(doc_path, file_part)
    if resolved is None:
        return False
    if resolved in corpus.documents:
        return _fragment_ok(corpus, resolved, fragment)
    if resolved in corpus.known_files:
        # fragments into non-Markdown files (line anchors etc.) are not checked
        return True
    return corpus.is_directory(resolved)


def _unresolved(doc: Document, link: Link, target: str) -> Finding:
    return Finding(
        severity=Severity.ERROR,
        category=Category.UNRESOLVED_LINK,
        path=doc.path,
        line=link.start_line,
        message=f"Unresolved link '{link.display_text}' -> {target or '(empty target)'}",
    )


def resolve_document(doc: Document, corpus: Corpus) -> List[Finding]:
    findings: List[Finding] = []
    links = doc.links()
    labels = {normalize_label(l.label) for l in links if l.kind == "definition"}

    for link in links:
        if link.kind == "reference":
            if normalize_label(link.label) not in labels:
                findings.append(_unresolved(doc, link, f"[{link.label}]"))
            continue
        if not target_resolves(link.target, doc.path, corpus):
            findings.append(_unresolved(doc, link, link.target))
    return findings


def resolve_links(corpus: Corpus) -> List[Finding]:
    findings: List[Finding] = []
    for path in sorted(corpus.documents):
        findings.extend(resolve_document(corpus.documents[path], corpus))
    logger.info(f"Resolved links across {len(corpus.documents)} documents ({len(findings)} unresolved)")
    return findings
