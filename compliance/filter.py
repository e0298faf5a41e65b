from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Pattern, Protocol, Tuple

from models.schemas import ComplianceResult

logger = logging.getLogger(__name__)

EMPTY_REPLY_PLACEHOLDER = "(no response text)"

ADVISORY_NOTE = "Note: conservative wording was applied to keep this copy within advertising guidelines."

REWRITE_SYSTEM_PROMPT = (
    "You edit marketing copy for regulated health clinics (physiotherapy, chiropractic, osteopathy, "
    "registered massage therapy). Rewrite the text into compliant, neutral, verifiable phrasing while "
    "preserving its intent and structure. Remove superlatives and comparisons, guarantees of results, "
    "claims to cure or fix conditions, speed claims, testimonials, and promotional incentives. "
    "Return only the rewritten text."
)

SUPERLATIVE_RE = re.compile(
    r"#\s?1\b"
    r"|\bnumber\s+(?:1|one)\b"
    r"|\btop[-\s]?rated\b"
    r"|\bworld[-\s]?class\b"
    r"|\bstate[-\s]of[-\s]the[-\s]art\b"
    r"|\bexpert(?:s|ly)?\b"
    r"|\b(?:best|leading)\b",
    re.IGNORECASE,
)

PERCENT_OFF_RE = re.compile(r"\b\d{1,3}(?:\.\d+)?\s*(?:%|percent)\s*off\b", re.IGNORECASE)

INCENTIVE_RE = re.compile(
    r"\bbuy\s+one,?\s+get\s+one(?:\s+free)?\b"
    r"|\btwo[-\s]for[-\s]one\b"
    r"|\b2[-\s]for[-\s]1\b"
    r"|(?:%|\bpercent)\s*off\b"
    r"|\b(?:free|discount(?:s|ed)?|coupons?|complimentary|bogo)\b",
    re.IGNORECASE,
)

# Checked against the raw reply to decide whether a remote rewrite is worth a round trip.
STRICT_BANNED_RE = re.compile(
    r"#\s?1\b"
    r"|\b(?:best|leading|top[-\s]?rated|world[-\s]?class|number\s+(?:1|one)|fastest|miracle"
    r"|guarantee[sd]?|guaranteeing|cures?|cured|curing)\b",
    re.IGNORECASE,
)


def superlative_synonym(term: str) -> str:
    lower = term.lower()
    if "expert" in lower:
        return "experienced"
    if any(key in lower for key in ("leading", "best", "top", "#", "number")):
        return "trusted"
    return "professional"


@dataclass(frozen=True)
class ComplianceRule:
    category: str
    pattern: Pattern[str]
    remedy: Callable[[str], str]


TIER1_RULES: Tuple[ComplianceRule, ...] = (
    ComplianceRule("superlative", SUPERLATIVE_RE, superlative_synonym),
    ComplianceRule("incentive", PERCENT_OFF_RE, lambda _term: "introductory rate"),
    ComplianceRule("incentive", INCENTIVE_RE, lambda _term: "introductory"),
)


class ComplianceRewriter(Protocol):
    async def rewrite(self, system_prompt: str, text: str) -> str: ...


def needs_remote_rewrite(text: str) -> bool:
    return bool(STRICT_BANNED_RE.search(text or ""))


def apply_local_rules(text: str) -> Tuple[str, List[Dict[str, str]]]:
    """Tier 1: swap disallowed terms for neutral ones and flag the copy once."""
    substitutions: List[Dict[str, str]] = []
    out = text or ""
    for rule in TIER1_RULES:

        def _sub(match: "re.Match[str]", rule: ComplianceRule = rule) -> str:
            replacement = rule.remedy(match.group(0))
            substitutions.append({"category": rule.category, "term": match.group(0), "replacement": replacement})
            return replacement

        out = rule.pattern.sub(_sub, out)
    if substitutions and ADVISORY_NOTE not in out:
        out = f"{out.rstrip()}\n\n{ADVISORY_NOTE}" if out.strip() else ADVISORY_NOTE
    return out, substitutions


class ComplianceFilter:
    def __init__(self, rewriter: Optional[ComplianceRewriter] = None, system_prompt: str = REWRITE_SYSTEM_PROMPT) -> None:
        self.rewriter = rewriter
        self.system_prompt = system_prompt

    async def apply(self, text: str) -> ComplianceResult:
        raw = text or ""
        working, substitutions = apply_local_rules(raw)
        result = ComplianceResult(text=working, substitutions=substitutions, tier1_applied=bool(substitutions))

        if self.rewriter is not None and needs_remote_rewrite(raw):
            result.tier2_attempted = True
            try:
                rewritten = (await self.rewriter.rewrite(self.system_prompt, working) or "").strip()
            except Exception as exc:
                result.tier2_error = repr(exc)
                logger.warning("compliance_rewrite_failed", extra={"error": repr(exc)})
            else:
                if rewritten:
                    working = rewritten
                    result.tier2_applied = True

        result.text = working.strip() or EMPTY_REPLY_PLACEHOLDER
        return result
