from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Importance(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class TranscriptSegment:
    id: str
    timestamp: int  # elapsed seconds at finalization
    text: str
    is_highlight: bool

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "text": self.text,
            "is_highlight": self.is_highlight,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TranscriptSegment":
        return cls(
            id=data["id"],
            timestamp=int(data["timestamp"]),
            text=data["text"],
            is_highlight=bool(data["is_highlight"]),
        )


@dataclass(frozen=True)
class Highlight:
    id: str
    timestamp: int
    text: str
    summary: str
    keywords: tuple[str, ...] = ()
    importance: Importance = Importance.HIGH

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "text": self.text,
            "summary": self.summary,
            "keywords": list(self.keywords),
            "importance": self.importance.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Highlight":
        return cls(
            id=data["id"],
            timestamp=int(data["timestamp"]),
            text=data["text"],
            summary=data["summary"],
            keywords=tuple(data.get("keywords", [])),
            importance=Importance(data.get("importance", Importance.HIGH.value)),
        )


@dataclass(frozen=True)
class Lecture:
    id: str
    title: str
    date: datetime
    duration: int
    presenter: str | None = None
    transcript: tuple[TranscriptSegment, ...] = field(default_factory=tuple)
    highlights: tuple[Highlight, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "presenter": self.presenter,
            "date": self.date.isoformat(),
            "duration": self.duration,
            "transcript": [s.to_dict() for s in self.transcript],
            "highlights": [h.to_dict() for h in self.highlights],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Lecture":
        return cls(
            id=data["id"],
            title=data["title"],
            presenter=data.get("presenter"),
            date=datetime.fromisoformat(data["date"]),
            duration=int(data["duration"]),
            transcript=tuple(
                TranscriptSegment.from_dict(s) for s in data.get("transcript", [])
            ),
            highlights=tuple(
                Highlight.from_dict(h) for h in data.get("highlights", [])
            ),
        )
