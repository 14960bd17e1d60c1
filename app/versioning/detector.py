"""
Word-level change detection between two versions of a page's content.
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import SequenceMatcher

DEFAULT_SIGNIFICANCE_THRESHOLD = 5.0


@dataclass(frozen=True)
class ChangeAssessment:
    change_percentage: float
    summary: str
    is_significant: bool
    words_added: int = 0
    words_removed: int = 0


def detect_change(
    old_content: str,
    new_content: str,
    *,
    threshold: float = DEFAULT_SIGNIFICANCE_THRESHOLD,
) -> ChangeAssessment:
    """
    Compare two texts word by word.

    The percentage is (added + removed) over every word appearing in the
    diff (unchanged + added + removed), so it is bounded to [0, 100].
    A change is significant when the percentage exceeds `threshold`.
    """

    if old_content == new_content:
        return ChangeAssessment(change_percentage=0.0, summary="No changes detected", is_significant=False)

    old_words = (old_content or "").split()
    new_words = (new_content or "").split()

    added = removed = unchanged = 0
    matcher = SequenceMatcher(a=old_words, b=new_words, autojunk=False)
    for tag, old_start, old_end, new_start, new_end in matcher.get_opcodes():
        if tag == "equal":
            unchanged += old_end - old_start
        else:
            removed += old_end - old_start
            added += new_end - new_start

    total = unchanged + added + removed
    percentage = round((added + removed) / total * 100, 2) if total else 0.0
    is_significant = percentage > threshold
    summary = f"+{added} words added, -{removed} words removed" if is_significant else "Minor changes detected"
    return ChangeAssessment(
        change_percentage=percentage,
        summary=summary,
        is_significant=is_significant,
        words_added=added,
        words_removed=removed,
    )
