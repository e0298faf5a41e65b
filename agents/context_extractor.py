from __future__ import annotations

import re
from typing import List, Optional, Pattern, Tuple

from models.schemas import Profession


PROFESSION_PATTERNS: List[Tuple[Profession, Pattern[str]]] = [
    (Profession.PHYSIO, re.compile(r"\b(physio\w*|physical\s+therap\w*)", re.IGNORECASE)),
    (Profession.CHIRO, re.compile(r"\bchiro\w*", re.IGNORECASE)),
    (Profession.OSTEO, re.compile(r"\b(osteopath\w*|osteos?\b)", re.IGNORECASE)),
    (Profession.RMT, re.compile(r"\b(rmts?\b|registered\s+massage|massage\s+therap\w*)", re.IGNORECASE)),
]

# (code, full-name pattern). Names match case-insensitively; codes only as upper-case words.
REGION_TABLE: List[Tuple[str, str]] = [
    ("ON", r"ontario"),
    ("BC", r"british\s+columbia"),
    ("AB", r"alberta"),
    ("SK", r"saskatchewan"),
    ("MB", r"manitoba"),
    ("QC", r"qu[eé]bec"),
    ("NB", r"new\s+brunswick"),
    ("NS", r"nova\s+scotia"),
    ("PE", r"prince\s+edward\s+island|p\.?e\.?i\.?"),
    ("NL", r"newfoundland(?:\s+and\s+labrador)?|labrador"),
    ("YT", r"yukon"),
    ("NT", r"northwest\s+territories"),
    ("NU", r"nunavut"),
    ("CA", r"california"),
    ("NY", r"new\s+york"),
    ("TX", r"texas"),
    ("FL", r"florida"),
    ("WA", r"washington"),
    ("IL", r"illinois"),
    ("MA", r"massachusetts"),
]

REGION_PATTERNS: List[Tuple[str, Pattern[str], Pattern[str]]] = [
    (code, re.compile(rf"\b(?:{name})(?!\w)", re.IGNORECASE), re.compile(rf"\b{code}\b"))
    for code, name in REGION_TABLE
]


def extract_profession(text: str) -> Optional[Profession]:
    for profession, pattern in PROFESSION_PATTERNS:
        if pattern.search(text or ""):
            return profession
    return None


def extract_region(text: str) -> Optional[str]:
    text = text or ""
    for code, name_pattern, code_pattern in REGION_PATTERNS:
        if name_pattern.search(text) or code_pattern.search(text):
            return code
    return None
