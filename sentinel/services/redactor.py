"""
Redaction of third-party student names before a case leaves the system.

Redaction is a two-tier heuristic against the roster:

- a roster name (other than the case subject) longer than 4 characters is
  replaced wherever it occurs, case-insensitively, with FULL_NAME_PLACEHOLDER;
- its first token, when longer than 3 characters and different from the
  subject's first token, is replaced as a whole word with FIRST_NAME_PLACEHOLDER.

Mentions are tagged as spans on the input first and substituted in one
splice. Occurrences of the subject's own name are never touched, and the
transform is idempotent: redacting redacted text changes nothing.

Known gap: common first names that are also ordinary words are redacted,
and nicknames or misspellings are missed.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple

FULL_NAME_PLACEHOLDER = "[REDACTED STUDENT]"
FIRST_NAME_PLACEHOLDER = "[STUDENT]"

# Names must be strictly longer than these to be redacted
MIN_FULL_NAME_LENGTH = 4
MIN_FIRST_NAME_LENGTH = 3

# Words appearing inside the placeholders can never be redaction targets
_PLACEHOLDER_WORDS = {"redacted", "student"}


@dataclass(frozen=True)
class NameMention:
    """A span of text that redaction will replace."""
    start: int
    end: int
    name: str
    placeholder: str


def _first_token(name: str) -> str:
    parts = name.split()
    return parts[0] if parts else ""


def _targets(subject_name: str, roster_names: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Split the roster into full-name and first-name targets, longest first."""
    subject = (subject_name or "").strip().lower()
    subject_first = _first_token(subject)

    full_names, first_names = [], []
    for name in roster_names:
        name = (name or "").strip()
        if name.lower() == subject or len(name) <= MIN_FULL_NAME_LENGTH:
            continue
        if name.lower() not in (n.lower() for n in full_names):
            full_names.append(name)

        first = _first_token(name)
        if (
            len(first) > MIN_FIRST_NAME_LENGTH
            and first.lower() != subject_first
            and first.lower() not in _PLACEHOLDER_WORDS
            and first.lower() not in (n.lower() for n in first_names)
        ):
            first_names.append(first)

    full_names.sort(key=len, reverse=True)
    first_names.sort(key=len, reverse=True)
    return full_names, first_names


def _overlaps(start: int, end: int, spans) -> bool:
    return any(start < s_end and s_start < end for s_start, s_end in spans)


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def find_name_mentions(text: str, subject_name: str, roster_names: Iterable[str]) -> List[NameMention]:
    """
    Tag every third-party name mention in text, in order of position.

    Edge cases:
    - Mentions overlapping an occurrence of the subject's name are dropped
    - A first-name mention must be a whole word; the edge of a full-name
      mention counts as a word boundary
    - Longer names win over shorter names at overlapping positions
    """
    if not text:
        return []

    full_names, first_names = _targets(subject_name, roster_names)
    if not full_names:
        return []

    subject = (subject_name or "").strip()
    protected = []
    if subject:
        protected = [m.span() for m in re.finditer(re.escape(subject), text, re.IGNORECASE)]

    mentions: List[NameMention] = []

    full_pattern = re.compile("|".join(re.escape(n) for n in full_names), re.IGNORECASE)
    for match in full_pattern.finditer(text):
        if _overlaps(match.start(), match.end(), protected):
            continue
        mentions.append(NameMention(match.start(), match.end(), match.group(0), FULL_NAME_PLACEHOLDER))

    full_starts = {m.start for m in mentions}
    full_ends = {m.end for m in mentions}
    taken = protected + [(m.start, m.end) for m in mentions]

    for first in first_names:
        # Lookahead finds every occurrence, overlapping ones included
        for match in re.finditer("(?=(%s))" % re.escape(first), text, re.IGNORECASE):
            start = match.start()
            end = start + len(match.group(1))
            left_ok = start == 0 or start in full_ends or not _is_word_char(text[start - 1])
            right_ok = end == len(text) or end in full_starts or not _is_word_char(text[end])
            if not (left_ok and right_ok) or _overlaps(start, end, taken):
                continue
            mentions.append(NameMention(start, end, match.group(1), FIRST_NAME_PLACEHOLDER))
            taken.append((start, end))

    return sorted(mentions, key=lambda m: m.start)


def redact_text(text: str, subject_name: str, roster_names: Iterable[str], enabled: bool = True) -> str:
    """
    Replace third-party student names in text with placeholders.

    With enabled=False the text is returned unchanged. Never raises;
    names with no matches are simply skipped.
    """
    if not enabled or not text:
        return text

    pieces = []
    cursor = 0
    for mention in find_name_mentions(text, subject_name, roster_names):
        pieces.append(text[cursor:mention.start])
        pieces.append(mention.placeholder)
        cursor = mention.end
    pieces.append(text[cursor:])
    return "".join(pieces)
