import re
from dataclasses import dataclass, field

from lecture_mate.config import DEFAULT_HIGHLIGHT_KEYWORDS, Settings

ELLIPSIS = "..."

_SENTENCE_END = re.compile(r"[.!?]")
_STRIP_PUNCTUATION = re.compile(r"[.,!?;:]")
_EMPHASIS_PUNCTUATION = re.compile(r"[!?]")


@dataclass(frozen=True)
class HighlightConfig:
    highlight_keywords: tuple[str, ...] = field(
        default_factory=lambda: tuple(DEFAULT_HIGHLIGHT_KEYWORDS)
    )
    audio_emphasis_threshold: float = 80.0
    emphasis_min_length: int = 10
    max_keywords: int = 5
    summary_max_length: int = 100

    @classmethod
    def from_settings(cls, settings: Settings) -> "HighlightConfig":
        return cls(
            highlight_keywords=tuple(settings.highlight_keywords),
            audio_emphasis_threshold=settings.audio_emphasis_threshold,
            emphasis_min_length=settings.emphasis_min_length,
            max_keywords=settings.max_keywords,
            summary_max_length=settings.summary_max_length,
        )


@dataclass(frozen=True)
class Classification:
    is_highlight: bool
    summary: str = ""
    keywords: tuple[str, ...] = ()


DEFAULT_CONFIG = HighlightConfig()


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------


def _contains_keyword(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def should_highlight(
    text: str, audio_level: float, config: HighlightConfig = DEFAULT_CONFIG
) -> bool:
    """Decide whether a finalized fragment is worth highlighting.

    True when the text mentions a highlight keyword, when the speaker is
    loud (``audio_level`` above the emphasis threshold) on a fragment longer
    than ``emphasis_min_length``, or when the text carries ``!`` / ``?``.
    """
    if _contains_keyword(text, config.highlight_keywords):
        return True
    if (
        audio_level > config.audio_emphasis_threshold
        and len(text) > config.emphasis_min_length
    ):
        return True
    return bool(_EMPHASIS_PUNCTUATION.search(text))


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS


def generate_summary(text: str, max_length: int = 100) -> str:
    """First sentence of ``text``, truncated to ``max_length`` characters."""
    for sentence in _SENTENCE_END.split(text):
        sentence = sentence.strip()
        if sentence:
            return _truncate(sentence, max_length)
    return _truncate(text, max_length)


def extract_keywords(text: str, config: HighlightConfig = DEFAULT_CONFIG) -> list[str]:
    """Pick up to ``max_keywords`` terms by adjacency and repetition.

    A whitespace token (punctuation stripped, at least 2 characters) is kept
    when the token before it contains a highlight keyword, or when it occurs
    two or more times in ``text`` as a plain substring. Order is discovery
    order; duplicates are dropped.
    """
    words = text.split()
    found: list[str] = []

    for index, word in enumerate(words):
        clean = _STRIP_PUNCTUATION.sub("", word)
        if len(clean) < 2:
            continue
        if index > 0 and _contains_keyword(words[index - 1], config.highlight_keywords):
            found.append(clean)
        # str.count matches the literal, non-overlapping substring rule
        if text.count(clean) >= 2 and len(found) < config.max_keywords:
            found.append(clean)

    return list(dict.fromkeys(found))[: config.max_keywords]


def classify(
    text: str, audio_level: float, config: HighlightConfig = DEFAULT_CONFIG
) -> Classification:
    if not should_highlight(text, audio_level, config):
        return Classification(is_highlight=False)
    return Classification(
        is_highlight=True,
        summary=generate_summary(text, config.summary_max_length),
        keywords=tuple(extract_keywords(text, config)),
    )
