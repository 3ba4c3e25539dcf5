from typing import Optional


def normalize_text(s: Optional[str]) -> str:
    """Lowercase, trim and collapse whitespace runs to one space."""
    if not s:
        return ""
    return " ".join(s.strip().lower().split())


def normalize_name(name: Optional[str]) -> str:
    return normalize_text(name)


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def trimmed(value: Optional[str]) -> str:
    return (value or "").strip()


def names_differ(current: Optional[str], incoming: Optional[str]) -> bool:
    # Names compare case-sensitively, emails do not.
    return trimmed(current) != trimmed(incoming)


def emails_differ(current: Optional[str], incoming: Optional[str]) -> bool:
    return normalize_email(current) != normalize_email(incoming)
