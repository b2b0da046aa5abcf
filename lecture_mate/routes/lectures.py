from urllib.parse import quote

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from lecture_mate.models import Lecture
from lecture_mate.services.export import (
    all_keywords,
    filter_highlights,
    filter_transcript,
    lecture_stats,
    render_lecture_text,
)
from lecture_mate.services.storage import LectureStore

router = APIRouter(prefix="/api", tags=["lectures"])


class LectureUpdate(BaseModel):
    title: str


async def _get_or_404(lecture_id: str) -> Lecture:
    lecture = await LectureStore.get_lecture(lecture_id)
    if lecture is None:
        raise HTTPException(status_code=404, detail=f"Lecture {lecture_id} not found")
    return lecture


@router.get("/lectures")
async def list_lectures() -> list[dict]:
    return [lecture.to_dict() for lecture in await LectureStore.list_lectures()]


@router.get("/lectures/stats")
async def get_stats() -> dict:
    return lecture_stats(await LectureStore.list_lectures())


@router.get("/lectures/{lecture_id}")
async def get_lecture(lecture_id: str) -> dict:
    lecture = await _get_or_404(lecture_id)
    return {**lecture.to_dict(), "keywords": all_keywords(lecture)}


@router.patch("/lectures/{lecture_id}")
async def update_lecture(lecture_id: str, body: LectureUpdate) -> dict:
    title = body.title.strip()
    if not title:
        raise HTTPException(status_code=422, detail="Title must not be empty")
    lecture = await LectureStore.rename_lecture(lecture_id, title)
    if lecture is None:
        raise HTTPException(status_code=404, detail=f"Lecture {lecture_id} not found")
    return lecture.to_dict()


@router.delete("/lectures/{lecture_id}")
async def delete_lecture(lecture_id: str) -> dict:
    if not await LectureStore.delete_lecture(lecture_id):
        raise HTTPException(status_code=404, detail=f"Lecture {lecture_id} not found")
    return {"deleted": lecture_id}


@router.get("/lectures/{lecture_id}/export")
async def export_lecture(lecture_id: str) -> PlainTextResponse:
    lecture = await _get_or_404(lecture_id)
    filename = quote(f"{lecture.title}.txt")
    return PlainTextResponse(
        render_lecture_text(lecture),
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{filename}"},
    )


@router.get("/lectures/{lecture_id}/highlights")
async def search_lecture(
    lecture_id: str, q: str | None = None, keyword: str | None = None
) -> dict:
    """Highlights and transcript lines matching a search query or keyword."""
    lecture = await _get_or_404(lecture_id)
    return {
        "highlights": [h.to_dict() for h in filter_highlights(lecture, q, keyword)],
        "transcript": [s.to_dict() for s in filter_transcript(lecture, q)],
    }
