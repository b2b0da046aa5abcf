import math

from lecture_mate.models import Highlight, Lecture, TranscriptSegment


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_time(seconds: int) -> str:
    """``125`` -> ``"02:05"``. Minutes are not wrapped into hours."""
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


def format_date(lecture: Lecture) -> str:
    d = lecture.date
    return f"{d.year}년 {d.month}월 {d.day}일 {d.hour:02d}:{d.minute:02d}"


def render_lecture_text(lecture: Lecture) -> str:
    """Plain-text export: header, numbered highlights, then the full transcript."""
    highlight_lines = [
        f"{i}. [{format_time(h.timestamp)}] {h.summary}\n   키워드: {', '.join(h.keywords)}\n"
        for i, h in enumerate(lecture.highlights, start=1)
    ]
    transcript_lines = [
        f"[{format_time(s.timestamp)}] {s.text}" for s in lecture.transcript
    ]
    return (
        f"{lecture.title}\n{format_date(lecture)}\n\n"
        "=== 핵심 하이라이트 ===\n\n"
        + "\n".join(highlight_lines)
        + "\n\n=== 전체 자막 ===\n\n"
        + "\n".join(transcript_lines)
    )


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


def all_keywords(lecture: Lecture) -> list[str]:
    """Every highlight keyword once, in discovery order."""
    return list(dict.fromkeys(k for h in lecture.highlights for k in h.keywords))


def filter_highlights(
    lecture: Lecture, query: str | None = None, keyword: str | None = None
) -> list[Highlight]:
    """Exact ``keyword`` match wins; otherwise case-insensitive ``query`` search."""
    if keyword:
        return [h for h in lecture.highlights if keyword in h.keywords]
    if not query:
        return list(lecture.highlights)
    q = query.lower()
    return [
        h
        for h in lecture.highlights
        if q in h.text.lower()
        or q in h.summary.lower()
        or any(q in k.lower() for k in h.keywords)
    ]


def filter_transcript(lecture: Lecture, query: str | None = None) -> list[TranscriptSegment]:
    if not query:
        return list(lecture.transcript)
    q = query.lower()
    return [s for s in lecture.transcript if q in s.text.lower()]


def lecture_stats(lectures: list[Lecture]) -> dict:
    total_highlights = sum(len(lec.highlights) for lec in lectures)
    return {
        "lectures": len(lectures),
        "total_duration": sum(lec.duration for lec in lectures),
        "total_highlights": total_highlights,
        "average_highlights": _round_half_up(total_highlights / len(lectures)) if lectures else 0,
    }


def _round_half_up(value: float) -> int:
    # halves round up, so 2.5 -> 3
    return math.floor(value + 0.5)
