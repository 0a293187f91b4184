"""
Core data models for the Quiz Presenter bot.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class QuizStatus(Enum):
    """Publishing lifecycle of a quiz."""
    DRAFT = "draft"
    PUBLISHED = "published"


class DisplayMode(Enum):
    """What the presentation shows for the current question."""
    QUIZ = "quiz"
    ANSWER = "answer"


@dataclass
class Quiz:
    """A named, ordered collection of questions."""
    id: str
    title: str
    description: str = ""
    status: QuizStatus = QuizStatus.DRAFT
    created_by: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def is_published(self) -> bool:
        return self.status is QuizStatus.PUBLISHED


@dataclass
class Question:
    """A single multiple-choice prompt belonging to one quiz."""
    text: str
    options: List[str]
    correct_index: int
    timer_seconds: int = 30
    order_number: int = 1
    starred: bool = False
    image_url: Optional[str] = None
    id: Optional[str] = None
    quiz_id: Optional[str] = None

    @property
    def correct_option(self) -> str:
        return self.options[self.correct_index]


@dataclass
class ImageUpload:
    """An image file waiting to be uploaded to a storage bucket."""
    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class QuestionDraft:
    """A question as submitted from an admin form, before it is saved."""
    text: str
    options: List[str] = field(default_factory=lambda: ["", ""])
    correct_index: int = 0
    timer_seconds: int = 30
    starred: bool = False
    image_url: Optional[str] = None
    image: Optional[ImageUpload] = None
    id: Optional[str] = None


@dataclass
class Season:
    """A named grouping of leaderboard winners."""
    id: str
    name: str
    created_at: Optional[str] = None


@dataclass
class LeaderboardEntry:
    """A winner placed in a season."""
    season: str
    winner_name: str
    position: int
    score: Optional[str] = None
    winner_photo: Optional[str] = None
    photo: Optional[ImageUpload] = None
    id: Optional[str] = None


@dataclass
class AdminAccount:
    """An email address allowed to use the administrative commands."""
    id: str
    email: str
    created_at: Optional[str] = None


@dataclass(frozen=True)
class PresentationState:
    """Read-only snapshot of a presentation, used for rendering."""
    current_index: int
    total_questions: int
    question: Question
    mode: DisplayMode
    remaining_seconds: int
    is_running: bool

    @property
    def is_first(self) -> bool:
        return self.current_index == 0

    @property
    def is_last(self) -> bool:
        return self.current_index == self.total_questions - 1
