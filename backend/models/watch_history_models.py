"""
Watch history document: one per (user, course, chapter, lecture).
Collection name: "watch_history"
"""
from datetime import datetime
from typing import List, Optional, Literal

from pydantic import BaseModel, Field

from core.config import WATCH_COMPLETION_THRESHOLD, MAX_INTERACTIONS
from models.common import Document, new_id, percentage, utcnow

InteractionType = Literal["play", "pause", "seek", "skip", "rewind", "speed_change", "quality_change"]


class DeviceInfo(BaseModel):
    user_agent: Optional[str] = None
    ip: Optional[str] = None
    platform: Optional[str] = None


class WatchSession(BaseModel):
    """One contiguous playback interval; open while ``end_time`` is unset."""
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    start_position: float = 0
    end_position: Optional[float] = None
    duration: Optional[float] = Field(None, description="Seconds watched")
    completed: bool = False
    device_info: DeviceInfo = Field(default_factory=DeviceInfo)

    @property
    def is_open(self) -> bool:
        return self.end_time is None


class Interaction(BaseModel):
    type: InteractionType
    timestamp: Optional[float] = Field(None, description="Video position in seconds")
    value: str = ""
    occurred_at: datetime = Field(default_factory=utcnow)


class WatchHistory(Document):
    """Watch history collection schema."""
    user_id: str
    course_id: str
    chapter_id: str
    lecture_id: str
    watch_sessions: List[WatchSession] = Field(default_factory=list)
    total_watch_time: float = Field(0, description="Seconds across closed sessions")
    last_watch_position: float = 0
    completion_percentage: int = Field(0, ge=0, le=100)
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    first_watched_at: datetime = Field(default_factory=utcnow)
    last_watched_at: datetime = Field(default_factory=utcnow)
    watch_quality: Literal["auto", "240p", "360p", "480p", "720p", "1080p"] = "auto"
    playback_speed: float = 1.0
    interactions: List[Interaction] = Field(default_factory=list)

    @classmethod
    def create(cls, user_id: str, course_id: str, chapter_id: str, lecture_id: str) -> "WatchHistory":
        return cls(
            id=new_id("watch"),
            user_id=user_id,
            course_id=course_id,
            chapter_id=chapter_id,
            lecture_id=lecture_id,
        )

    @property
    def open_session(self) -> Optional[WatchSession]:
        """Only the most recently appended session can be open."""
        if self.watch_sessions and self.watch_sessions[-1].is_open:
            return self.watch_sessions[-1]
        return None

    def start_session(self, start_position: float = 0, device_info: Optional[DeviceInfo] = None) -> WatchSession:
        """
        Append a new open session.

        A session left open by the client is closed first as abandoned:
        zero duration, nothing added to the total watch time.
        """
        previous = self.open_session
        if previous is not None:
            previous.end_time = utcnow()
            previous.end_position = previous.start_position
            previous.duration = 0

        session = WatchSession(start_position=start_position, device_info=device_info or DeviceInfo())
        self.watch_sessions.append(session)
        self.last_watched_at = utcnow()
        return session

    def end_session(self, end_position: float, lecture_duration: float) -> Optional[WatchSession]:
        """
        Close the open session, if any, and fold it into the totals.
        Returns None (and changes nothing) when no session is open.
        """
        session = self.open_session
        if session is None:
            return None

        session.end_time = utcnow()
        session.end_position = end_position
        session.duration = max(0, end_position - session.start_position)

        self.total_watch_time += session.duration
        self.last_watch_position = end_position
        self.last_watched_at = utcnow()

        if lecture_duration and lecture_duration > 0:
            self.completion_percentage = percentage(end_position, lecture_duration)
            if self.completion_percentage >= WATCH_COMPLETION_THRESHOLD and not self.is_completed:
                self.mark_completed()
                session.completed = True
        return session

    def mark_completed(self) -> None:
        if not self.is_completed:
            self.is_completed = True
            self.completed_at = utcnow()

    def update_position(self, position: float) -> None:
        self.last_watch_position = position
        self.last_watched_at = utcnow()

    def add_interaction(self, type: InteractionType, timestamp: Optional[float] = None, value: str = "") -> Interaction:
        """Append to the interaction trail, keeping only the newest entries."""
        interaction = Interaction(type=type, timestamp=timestamp, value=value)
        self.interactions.append(interaction)
        if len(self.interactions) > MAX_INTERACTIONS:
            self.interactions = self.interactions[-MAX_INTERACTIONS:]
        return interaction
