import json
import logging
from datetime import datetime

from lecture_mate.database import get_async_conn, get_sync_conn
from lecture_mate.models import Highlight, Lecture, TranscriptSegment

logger = logging.getLogger(__name__)

_UPSERT = """INSERT OR REPLACE INTO lectures
   (id, title, presenter, date, duration, transcript_json, highlights_json)
   VALUES (?, ?, ?, ?, ?, ?, ?)"""


def _row_to_lecture(row) -> Lecture:  # noqa: ANN001
    return Lecture(
        id=row["id"],
        title=row["title"],
        presenter=row["presenter"],
        date=datetime.fromisoformat(row["date"]),
        duration=row["duration"],
        transcript=tuple(
            TranscriptSegment.from_dict(s) for s in json.loads(row["transcript_json"])
        ),
        highlights=tuple(
            Highlight.from_dict(h) for h in json.loads(row["highlights_json"])
        ),
    )


class LectureStore:
    """Durable storage of finished lectures, keyed by lecture id."""

    @staticmethod
    def save(lecture: Lecture) -> None:
        """Insert or overwrite a lecture. Blocking; used as a session sink."""
        conn = get_sync_conn()
        try:
            conn.execute(
                _UPSERT,
                (
                    lecture.id,
                    lecture.title,
                    lecture.presenter,
                    lecture.date.isoformat(),
                    lecture.duration,
                    json.dumps([s.to_dict() for s in lecture.transcript], ensure_ascii=False),
                    json.dumps([h.to_dict() for h in lecture.highlights], ensure_ascii=False),
                ),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Saved lecture %s (%s)", lecture.id, lecture.title)

    @staticmethod
    async def list_lectures() -> list[Lecture]:
        """All lectures, newest first."""
        conn = await get_async_conn()
        try:
            rows = await conn.execute("SELECT * FROM lectures ORDER BY date DESC")
            return [_row_to_lecture(row) for row in await rows.fetchall()]
        finally:
            await conn.close()

    @staticmethod
    async def get_lecture(lecture_id: str) -> Lecture | None:
        conn = await get_async_conn()
        try:
            row = await conn.execute("SELECT * FROM lectures WHERE id = ?", (lecture_id,))
            found = await row.fetchone()
            return _row_to_lecture(found) if found else None
        finally:
            await conn.close()

    @staticmethod
    async def rename_lecture(lecture_id: str, title: str) -> Lecture | None:
        conn = await get_async_conn()
        try:
            cursor = await conn.execute(
                "UPDATE lectures SET title = ? WHERE id = ?", (title, lecture_id)
            )
            await conn.commit()
            if cursor.rowcount == 0:
                return None
        finally:
            await conn.close()
        return await LectureStore.get_lecture(lecture_id)

    @staticmethod
    async def delete_lecture(lecture_id: str) -> bool:
        conn = await get_async_conn()
        try:
            cursor = await conn.execute("DELETE FROM lectures WHERE id = ?", (lecture_id,))
            await conn.commit()
            return cursor.rowcount > 0
        finally:
            await conn.close()
