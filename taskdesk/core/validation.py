from typing import Optional, Sized

from taskdesk.core.errors import ValidationError, WordLimitExceeded


def count_words(text: Optional[str]) -> int:
    if not text or not text.strip():
        return 0
    return len(text.split())


def ensure_word_limit(text: Optional[str], limit: int, label: str) -> None:
    count = count_words(text)
    if count > limit:
        raise WordLimitExceeded(label, limit, count)


def ensure_upload_limit(uploads: Sized, limit: int, label: str) -> None:
    if len(uploads) > limit:
        raise ValidationError(f"Too many {label}. Max {limit} per request.")
