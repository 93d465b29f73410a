"""Pydantic data models for the lesson content generation pipeline."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

import config


class Level(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class GenerationPhase(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationPhase.COMPLETE, GenerationPhase.ERROR, GenerationPhase.CANCELED)

    @property
    def is_active(self) -> bool:
        return self in (GenerationPhase.STARTING, GenerationPhase.ANALYZING, GenerationPhase.GENERATING)


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"
    UNKNOWN = "unknown"


class ContentSource(str, Enum):
    MANUAL = "manual"
    AI_GENERATED = "ai_generated"
    MIXED = "mixed"


class GenerationRequest(BaseModel):
    """A request for AI lesson content. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    level: Level = Level.BEGINNER
    language: str = config.DEFAULT_LANGUAGE
    instructions: Optional[str] = None
    sections: list[str] = Field(default_factory=list)
    timestamp: str = Field(default_factory=config.utc_timestamp)

    @field_validator("title", "instructions", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("instructions")
    @classmethod
    def _blank_instructions_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    def to_payload(self) -> dict:
        """Body sent to the submission endpoint."""
        payload = {
            "title": self.title,
            "level": self.level.value,
            "language": self.language,
            "timestamp": self.timestamp,
        }
        if self.instructions:
            payload["instructions"] = self.instructions
        if self.sections:
            payload["sections"] = list(self.sections)
        return payload


class GenerationJob(BaseModel):
    """Handle for one in-flight provider request."""

    model_config = ConfigDict(frozen=True)

    id: str
    submitted_at: datetime
    status: str = "starting"
    poll_url: Optional[str] = None


class KeyPhrase(BaseModel):
    model_config = ConfigDict(frozen=True)

    phrase: StrictStr
    translation: StrictStr = ""
    usage: StrictStr = ""


class VocabularyEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    word: StrictStr
    translation: StrictStr = ""
    part_of_speech: StrictStr = Field(default="", alias="partOfSpeech")


class GeneratedLessonContent(BaseModel):
    """Typed lesson document produced by the model.

    The document is never mutated after parsing; edits go into the
    rendered text held by the lesson form.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    description: StrictStr
    objectives: tuple[StrictStr, ...] = ()
    practical_situations: tuple[StrictStr, ...] = Field(default=(), alias="practicalSituations")
    key_phrases: tuple[KeyPhrase, ...] = Field(default=(), alias="keyPhrases")
    vocabulary: tuple[VocabularyEntry, ...] = ()
    explanations: tuple[StrictStr, ...] = ()
    tips: tuple[StrictStr, ...] = ()

    @field_validator(
        "objectives",
        "practical_situations",
        "key_phrases",
        "vocabulary",
        "explanations",
        "tips",
        mode="before",
    )
    @classmethod
    def _missing_list_is_empty(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, list):
            return tuple(value)
        return value

    def to_payload(self) -> dict:
        """Provider-shaped (camelCase) JSON representation."""
        return self.model_dump(mode="json", by_alias=True)


class ErrorInfo(BaseModel):
    kind: ErrorKind
    message: str


class GenerationState(BaseModel):
    """Phase, progress and error of one generation attempt."""

    model_config = ConfigDict(validate_assignment=True)

    phase: GenerationPhase = GenerationPhase.IDLE
    progress_percent: int = Field(default=0, ge=0, le=100)
    status_message: str = ""
    error: Optional[ErrorInfo] = None
    poll_count: int = 0
    max_poll_count: int = config.MAX_POLL_COUNT
    retry_count: int = 0
    generation_id: Optional[str] = None


class PollStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


class PollResult(BaseModel):
    """Outcome of a single status poll."""

    model_config = ConfigDict(frozen=True)

    status: PollStatus
    payload: Any = None
    reason: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def pending(cls) -> "PollResult":
        return cls(status=PollStatus.PENDING)

    @classmethod
    def succeeded(cls, payload: Any) -> "PollResult":
        return cls(status=PollStatus.SUCCEEDED, payload=payload)

    @classmethod
    def failed(cls, reason: ErrorKind, message: str) -> "PollResult":
        return cls(status=PollStatus.FAILED, reason=reason, message=message)

    @classmethod
    def canceled(cls) -> "PollResult":
        return cls(status=PollStatus.CANCELED)

    @property
    def is_terminal(self) -> bool:
        return self.status != PollStatus.PENDING


class GenerationMetadata(BaseModel):
    """How a lesson's AI content was produced; stored with the lesson."""

    generation_id: Optional[str] = None
    level: Level
    language: str
    instructions: Optional[str] = None
    generated_at: str
    poll_count: int = 0


class RenderedContent(BaseModel):
    title: str
    text: str


class LessonForm(BaseModel):
    """Editable lesson in the authoring form."""

    model_config = ConfigDict(validate_assignment=True)

    title: str = ""
    content: str = ""
    estimated_minutes: Optional[int] = config.DEFAULT_ESTIMATED_MINUTES
    is_published: bool = False
    content_source: ContentSource = ContentSource.MANUAL
    structured_content: Optional[GeneratedLessonContent] = None
    generation_metadata: Optional[GenerationMetadata] = None

    def edit_content(self, text: str) -> None:
        """Apply a user edit to the rendered text.

        Editing accepted AI content makes the lesson mixed; manual
        lessons stay manual.
        """
        self.content = text
        if self.content_source == ContentSource.AI_GENERATED:
            self.content_source = ContentSource.MIXED

    def switch_to_manual(self) -> None:
        self.content_source = ContentSource.MANUAL

    def to_record(self) -> dict:
        """Column values for the lessons table."""
        return {
            "title": self.title,
            "content": self.content,
            "estimated_minutes": self.estimated_minutes,
            "is_published": self.is_published,
            "content_source": self.content_source.value,
            "structured_content": (
                self.structured_content.to_payload() if self.structured_content else None
            ),
            "generation_metadata": (
                self.generation_metadata.model_dump(mode="json") if self.generation_metadata else None
            ),
        }
