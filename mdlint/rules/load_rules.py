from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Tuple
import yaml

DEFAULT_RULES_PATH = str(Path(__file__).parent / "lint_rules.yml")


@dataclass(frozen=True)
class StringProfile:
    quotes: Tuple[str, ...] = ("'", '"')
    line_comments: Tuple[str, ...] = ()
    block_comments: Tuple[Tuple[str, str], ...] = ()
    triple_quotes: bool = False


@dataclass(frozen=True)
class FenceRules:
    recognized_tags: FrozenSet[str]
    balance_exempt_tags: FrozenSet[str] = frozenset({"", "text", "none"})
    profiles: Dict[str, StringProfile] = field(default_factory=dict)

    def profile_for(self, tag: str) -> Optional[StringProfile]:
        return self.profiles.get(tag)


@dataclass(frozen=True)
class DiscoveryRules:
    extensions: Tuple[str, ...] = (".md",)
    skip_dirs: FrozenSet[str] = frozenset({".git"})


def load_rule_pack(path: Optional[str] = None) -> Dict[str, Any]:
    with open(path or DEFAULT_RULES_PATH, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _profile(raw: Dict[str, Any]) -> StringProfile:
    blocks: List[Tuple[str, str]] = []
    for pair in raw.get("block_comments", []) or []:
        blocks.append((str(pair[0]), str(pair[1])))
    return StringProfile(
        quotes=tuple(str(q) for q in raw.get("quotes", ["'", '"']) or []),
        line_comments=tuple(str(c) for c in raw.get("line_comments", []) or []),
        block_comments=tuple(blocks),
        triple_quotes=bool(raw.get("triple_quotes", False)),
    )


def load_fence_rules(rule_pack: Dict[str, Any]) -> FenceRules:
    cfg = rule_pack.get("fences") or {}
    profiles = {
        str(tag).lower(): _profile(raw or {})
        for tag, raw in (cfg.get("string_literal_languages") or {}).items()
    }
    exempt = cfg.get("balance_exempt_tags")
    return FenceRules(
        recognized_tags=frozenset(str(t).lower() for t in cfg.get("recognized_tags", []) or []),
        balance_exempt_tags=(
            frozenset(str(t or "").lower() for t in exempt)
            if exempt is not None else frozenset({"", "text", "none"})
        ),
        profiles=profiles,
    )


def load_discovery_rules(rule_pack: Dict[str, Any]) -> DiscoveryRules:
    cfg = rule_pack.get("discovery") or {}
    return DiscoveryRules(
        extensions=tuple(str(e).lower() for e in cfg.get("extensions", [".md"]) or [".md"]),
        skip_dirs=frozenset(str(d) for d in cfg.get("skip_dirs", [".git"]) or []),
    )
