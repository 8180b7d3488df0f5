"""
Session lifecycle: questioning -> generating -> completed.

Creation is gated by the rate limiter; generation runs the synthesizer on a
snapshot of the history and then sets only the status and brief, so turns
appended during synthesis are kept. A failed or timed out synthesis leaves
the stored session in questioning.
"""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, List, Optional, Union

from aws_lambda_powertools import Logger

from clarifier.models.errors import (
    QuotaExceededException,
    SessionInvariantError,
    SessionNotFoundError,
    SessionStateError,
    SessionStateErrorCode,
    SynthesisError,
    SynthesisErrorCode,
    ValidationError,
)
from clarifier.models.session import ConversationTurn, Domain, Session, SessionStatus, SynthesisResult
from clarifier.models.subscription import RateLimitDecision, SubscriptionTier
from clarifier.services.brief_synthesizer import BriefSynthesizer
from clarifier.services.conversation_validator import validate_domain, validate_turn
from clarifier.services.rate_limiter import RateLimiter
from clarifier.services.session_store import SessionStore

logger = Logger()


class SessionLifecycle:
    def __init__(
        self,
        rate_limiter: RateLimiter,
        session_store: SessionStore,
        synthesizer: BriefSynthesizer,
        min_questions: int = 0,
        synthesis_timeout_seconds: Optional[float] = None,
    ):
        self.rate_limiter = rate_limiter
        self.session_store = session_store
        self.synthesizer = synthesizer
        self.min_questions = min_questions
        self.synthesis_timeout_seconds = synthesis_timeout_seconds

    def check_rate_limit(self, user_id: str) -> RateLimitDecision:
        return self.rate_limiter.check(user_id)

    def create_session(self, user_id: str, domain: Any) -> Union[Session, RateLimitDecision]:
        """
        Create a questioning session if the user has quota left.

        The conditional increment is the gate: a storage failure propagates
        and is never reported as a quota denial.

        Returns:
            Session on success, or the denying RateLimitDecision

        Raises:
            ValidationError: If the domain is not a known domain
            QuotaStoreError: If the usage profile cannot be read or updated
            SessionStoreError: If the session cannot be stored
        """
        validated_domain = validate_domain(domain)

        try:
            self.rate_limiter.consume(user_id)
        except QuotaExceededException as e:
            limit = int(e.quota_info.get("limit", 0))
            tier = SubscriptionTier.normalize(e.quota_info.get("tier"))
            logger.info(f"Session creation denied for {user_id}: limit {limit} reached on {tier.value}")
            return RateLimitDecision.denied(limit=limit, tier=tier)

        session = Session(user_id=user_id, domain=validated_domain)
        self.session_store.put_session(session)
        logger.info(f"Created session {session.session_id} for {user_id} in {validated_domain.value}")
        return session

    def _load(self, session_id: str) -> Session:
        session = self.session_store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    @staticmethod
    def _require_questioning(session: Session) -> None:
        if session.status == SessionStatus.QUESTIONING:
            return
        if session.status == SessionStatus.COMPLETED:
            raise SessionStateError(
                f"Session {session.session_id} is completed", SessionStateErrorCode.SESSION_COMPLETED
            )
        raise SessionStateError(
            f"Session {session.session_id} is {session.status.value}",
            SessionStateErrorCode.INVALID_TRANSITION,
        )

    def append_turn(self, session_id: str, turn: Any) -> Session:
        """Append a validated user or assistant turn to a questioning session."""
        session = self._load(session_id)
        self._require_questioning(session)
        validated = validate_turn(turn, index=len(session.history))
        return self.session_store.append_message(session_id, validated)

    def _run_synthesis(self, domain: Domain, history: List[ConversationTurn]) -> SynthesisResult:
        if self.synthesis_timeout_seconds is None:
            return self.synthesizer.synthesize_with_metadata(domain, history)

        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self.synthesizer.synthesize_with_metadata, domain, history)
        try:
            return future.result(timeout=self.synthesis_timeout_seconds)
        except FutureTimeoutError as e:
            raise SynthesisError(
                f"Synthesis exceeded {self.synthesis_timeout_seconds}s",
                SynthesisErrorCode.MODEL_TIMEOUT,
                e,
            ) from e
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def generate_brief(self, session_id: str) -> Session:
        """
        Synthesize the brief for a questioning session and complete it.

        Returns:
            Session: The completed session with brief and metadata

        Raises:
            SessionNotFoundError: If the session does not exist
            SessionStateError: If the session is not questioning or has too few questions
            SynthesisError: If synthesis fails; the session stays questioning
            SessionInvariantError: If stored history fails validation
        """
        session = self._load(session_id)
        self._require_questioning(session)
        if session.question_count < self.min_questions:
            raise SessionStateError(
                f"Session {session_id} has {session.question_count} questions, "
                f"{self.min_questions} required before generation",
                SessionStateErrorCode.MIN_QUESTIONS_NOT_MET,
            )

        snapshot = session.model_copy(deep=True)
        generating = snapshot.advance_to(SessionStatus.GENERATING)

        try:
            result = self._run_synthesis(generating.domain, list(generating.history))
        except ValidationError as e:
            logger.exception(f"Stored history for session {session_id} failed validation")
            raise SessionInvariantError(
                f"Session {session_id} history is invalid: {e.message}"
            ) from e
        except SynthesisError as e:
            logger.warning(f"Synthesis failed for session {session_id} ({e.code.value}): {e.message}")
            raise

        generating.advance_to(SessionStatus.COMPLETED)
        completed = self.session_store.complete_session(session_id, result.brief, result.metadata)
        logger.info(f"Session {session_id} completed with a {result.word_count}-word brief")
        return completed

    def get_session(self, session_id: str) -> Session:
        return self._load(session_id)
