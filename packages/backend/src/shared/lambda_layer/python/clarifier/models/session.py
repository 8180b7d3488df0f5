import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from clarifier.models.errors import SessionStateError, SessionStateErrorCode


class Domain(str, Enum):
    """Closed set of idea domains; selects the prompt template"""
    BUSINESS = "business"
    PRODUCT = "product"
    CREATIVE = "creative"
    RESEARCH = "research"
    TECHNICAL = "technical"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class SessionStatus(str, Enum):
    """Session lifecycle: questioning -> generating -> completed"""
    QUESTIONING = "questioning"
    GENERATING = "generating"
    COMPLETED = "completed"

    def can_transition_to(self, target: "SessionStatus") -> bool:
        return _TRANSITIONS.get(self) == target


_TRANSITIONS = {
    SessionStatus.QUESTIONING: SessionStatus.GENERATING,
    SessionStatus.GENERATING: SessionStatus.COMPLETED,
}


class ConversationTurn(BaseModel):
    role: Role
    content: str = Field(min_length=1)


class ValidatedConversation(BaseModel):
    """Domain and history that passed conversation validation"""
    domain: Domain
    history: List[ConversationTurn] = Field(default_factory=list)


class BriefMetadata(BaseModel):
    duration_ms: int = Field(ge=0)
    word_count: int = Field(ge=1)


class SynthesisResult(BaseModel):
    brief: str = Field(min_length=1)
    duration_ms: int = Field(ge=0)
    word_count: int = Field(ge=1)

    @property
    def metadata(self) -> BriefMetadata:
        return BriefMetadata(duration_ms=self.duration_ms, word_count=self.word_count)


class Session(BaseModel):
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    domain: Domain
    status: SessionStatus = Field(default=SessionStatus.QUESTIONING)
    history: List[ConversationTurn] = Field(default_factory=list)
    brief: Optional[str] = Field(default=None)
    brief_metadata: Optional[BriefMetadata] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field
    @property
    def question_count(self) -> int:
        """Number of questions the assistant has asked so far."""
        return sum(1 for turn in self.history if turn.role == Role.ASSISTANT)

    def can_generate(self, min_questions: int = 0) -> bool:
        return self.status == SessionStatus.QUESTIONING and self.question_count >= min_questions

    def advance_to(self, target: SessionStatus) -> "Session":
        """Return a copy moved to the next status; skipping or moving back is refused."""
        if not self.status.can_transition_to(target):
            code = (
                SessionStateErrorCode.SESSION_COMPLETED
                if self.status == SessionStatus.COMPLETED
                else SessionStateErrorCode.INVALID_TRANSITION
            )
            raise SessionStateError(
                f"Session {self.session_id} cannot move from {self.status.value} to {target.value}",
                code,
            )
        return self.model_copy(
            update={"status": target, "updated_at": datetime.now(timezone.utc)}
        )
