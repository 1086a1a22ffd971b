from typing import Optional


def normalize_text(s: str) -> str:
    return s.strip().lower()


def normalize_optional(s: Optional[str]) -> Optional[str]:
    if s is None:
        return None
    s = normalize_text(s)
    return s or None


def same_text(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return a is b
    return normalize_text(a) == normalize_text(b)
