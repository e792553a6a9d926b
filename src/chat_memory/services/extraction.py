"""Pattern-based extraction of names, topics and preferences from transcripts.

Every function here only looks at user-authored turns. Inputs are any objects
exposing ``is_user`` and ``content`` (``ChatTurn`` or ``MemoryMessage``).
"""

import re
from typing import Any, Dict, Iterable, List, Sequence

MAX_TOPICS = 10
SUMMARY_TOPICS = 3
SUMMARY_PREVIEW_CHARS = 100

COMMON_WORDS = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
        "her", "was", "one", "our", "out", "day", "get", "has", "him", "his",
        "how", "its", "may", "new", "now", "old", "see", "two", "who", "boy",
        "did", "does", "let", "man", "way", "oil", "sit", "set", "run", "eat",
        "far", "sea", "eye", "ask", "own", "under", "think", "also", "back",
        "after", "first", "well", "year", "work", "such", "make", "even",
        "here", "only", "many", "know", "take", "than", "them", "good", "some",
        "this", "that", "with", "have", "from", "they", "been", "said", "each",
        "which", "their", "time", "will", "about", "would", "there", "could",
        "other", "more", "very", "what", "just", "into", "over",
    }
)  # fmt: skip

# Applied in order, first match per pattern. "I'm called X" is listed before
# "I'm X", which must not capture the word "called" itself.
NAME_PATTERNS = [
    re.compile(r"\bmy name is (\w+)", re.IGNORECASE),
    re.compile(r"\bi'm called (\w+)", re.IGNORECASE),
    re.compile(r"\bi'm (?!called\b)(\w+)", re.IGNORECASE),
    re.compile(r"\bi am (\w+)", re.IGNORECASE),
    re.compile(r"\bcall me (\w+)", re.IGNORECASE),
    re.compile(r"\bname's (\w+)", re.IGNORECASE),
]

_TOPIC_WORD = re.compile(r"[^\W_]{4,}")
_LANGUAGE = re.compile(r"prefer\s+(\w+)\s+language|like\s+(\w+)\s+language")
_INTEREST = re.compile(r"interested in (\w+)|love (\w+)|enjoy (\w+)")


def is_common_word(word: str) -> bool:
    return word.lower() in COMMON_WORDS


def _user_contents(turns: Iterable[Any]) -> List[str]:
    return [t.content for t in turns if t.is_user and t.content]


def extract_names_from_message(content: str, names: List[str]) -> None:
    """Append names introduced in ``content`` to ``names``, skipping duplicates."""
    for pattern in NAME_PATTERNS:
        match = pattern.search(content)
        if not match:
            continue
        token = match.group(1)
        name = token[:1].upper() + token[1:].lower()
        if len(name) > 1 and not is_common_word(name) and name not in names:
            names.append(name)


def extract_user_names(transcripts: Iterable[Iterable[Any]]) -> List[str]:
    """Names across several transcripts; earlier transcripts are scanned first."""
    names: List[str] = []
    for turns in transcripts:
        for content in _user_contents(turns):
            extract_names_from_message(content, names)
    return names


def extract_topics(turns: Iterable[Any]) -> List[str]:
    """Distinct keywords in first-seen order, capped at ``MAX_TOPICS``.

    Selection follows transcript order rather than frequency.
    """
    topics: List[str] = []
    for content in _user_contents(turns):
        for keyword in _TOPIC_WORD.findall(content.lower()):
            if not is_common_word(keyword) and keyword not in topics:
                topics.append(keyword)
    return topics[:MAX_TOPICS]


def extract_preferences(turns: Iterable[Any]) -> Dict[str, Any]:
    """Derive language, communication style and interests from user turns.

    Later turns overwrite ``preferredLanguage`` and ``communicationStyle``;
    ``interests`` accumulates without duplicates.
    """
    preferences: Dict[str, Any] = {}

    for raw in _user_contents(turns):
        content = raw.lower()

        if ("prefer" in content or "like" in content) and "language" in content:
            lang_match = _LANGUAGE.search(content)
            if lang_match:
                preferences["preferredLanguage"] = lang_match.group(1) or lang_match.group(2)

        if "formal" in content or "casual" in content:
            preferences["communicationStyle"] = "formal" if "formal" in content else "casual"

        if "interested in" in content or "love" in content or "enjoy" in content:
            interest_match = _INTEREST.search(content)
            if interest_match:
                interest = next(g for g in interest_match.groups() if g)
                interests = preferences.setdefault("interests", [])
                if interest not in interests:
                    interests.append(interest)

    return preferences


def generate_summary(turns: Sequence[Any]) -> str:
    """One-line synopsis anchored to the first user message."""
    user_messages = _user_contents(turns)
    if not user_messages:
        return ""

    first_message = user_messages[0][:SUMMARY_PREVIEW_CHARS]
    topics_str = ", ".join(extract_topics(turns)[:SUMMARY_TOPICS])
    ellipsis = "..." if len(user_messages[0]) > SUMMARY_PREVIEW_CHARS else ""
    return f'Discussed {topics_str}. Started with: "{first_message}{ellipsis}"'
