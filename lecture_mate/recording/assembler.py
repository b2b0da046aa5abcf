import uuid
from datetime import datetime

from lecture_mate.models import Highlight, Lecture, TranscriptSegment


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex}"


def default_title(prefix: str, date: datetime) -> str:
    """``"강의 2026. 10. 19."`` style title for untitled lectures."""
    return f"{prefix} {date.year}. {date.month}. {date.day}."


def assemble_lecture(
    lecture_id: str,
    duration: int,
    transcript: tuple[TranscriptSegment, ...],
    highlights: tuple[Highlight, ...],
    title: str | None = None,
    presenter: str | None = None,
    date: datetime | None = None,
    title_prefix: str = "강의",
) -> Lecture:
    """Package a stopped session into an immutable ``Lecture``.

    Blank titles fall back to a dated default; blank presenters become None.
    """
    date = date or datetime.now()
    title = (title or "").strip() or default_title(title_prefix, date)
    presenter = (presenter or "").strip() or None
    return Lecture(
        id=lecture_id,
        title=title,
        presenter=presenter,
        date=date,
        duration=duration,
        transcript=tuple(transcript),
        highlights=tuple(highlights),
    )
