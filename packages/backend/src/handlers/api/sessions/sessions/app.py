import json
import os
from functools import cache
from typing import Any, Dict, Optional

from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver, Response, content_types
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.event_handler.exceptions import (
    BadRequestError,
    InternalServerError,
    NotFoundError,
    ServiceError,
    UnauthorizedError,
)
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import ValidationError as PydanticValidationError

from clarifier.constants.subscription_tiers import MIN_QUESTIONS_BEFORE_GENERATION
from clarifier.models.errors import (
    ClarifierError,
    SessionInvariantError,
    SessionNotFoundError,
    SessionStateError,
    SynthesisError,
    ValidationError,
)
from clarifier.models.session import Session
from clarifier.models.subscription import RateLimitDecision
from clarifier.services.brief_synthesizer import BriefSynthesizer
from clarifier.services.config import (
    get_profiles_table_name,
    get_sessions_table_name,
    get_synthesis_config,
)
from clarifier.services.quota_store import DynamoQuotaStore
from clarifier.services.rate_limiter import RateLimiter
from clarifier.services.session_lifecycle import SessionLifecycle
from clarifier.services.session_store import DynamoSessionStore
from clarifier.utils.auth import extract_user_id_from_event
from clarifier.utils.quota_middleware import rate_limit_headers, rate_limited_response

from sessions.models import AppendTurnRequest, CreateSessionRequest

# Initialize the logger
logger = Logger()

# Configure CORS
cors_config = CORSConfig(
    allow_origin="*",  # In production, specify your actual domain
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Tier", "Retry-After"],
)

# Initialize the APIGatewayRestResolver
app = APIGatewayRestResolver(cors=cors_config)


@cache
def get_session_lifecycle() -> SessionLifecycle:
    """Wire the lifecycle once per Lambda container."""
    synthesis_config = get_synthesis_config()
    return SessionLifecycle(
        rate_limiter=RateLimiter(DynamoQuotaStore(get_profiles_table_name())),
        session_store=DynamoSessionStore(get_sessions_table_name()),
        synthesizer=BriefSynthesizer(synthesis_config),
        min_questions=int(os.environ.get("MIN_QUESTIONS_BEFORE_GENERATION", MIN_QUESTIONS_BEFORE_GENERATION)),
        synthesis_timeout_seconds=synthesis_config.timeout_seconds,
    )


def require_user_id() -> str:
    user_id = extract_user_id_from_event(app.current_event.raw_event)
    if not user_id:
        logger.error("No user_id found in JWT token")
        raise UnauthorizedError("Authentication required")
    return user_id


def parse_body(model: Any) -> Any:
    try:
        return model(**(app.current_event.json_body or {}))
    except (PydanticValidationError, TypeError, ValueError) as exc:
        logger.error(f"Validation error: {str(exc)}")
        raise BadRequestError(f"Invalid request: {str(exc)}")


def to_http_error(exc: ClarifierError) -> ServiceError:
    """Map a pipeline error to the HTTP error returned to the caller."""
    if isinstance(exc, ValidationError):
        return BadRequestError(f"Invalid {exc.field}: {exc.message}")
    if isinstance(exc, SessionNotFoundError):
        return NotFoundError("Session not found")
    if isinstance(exc, SessionStateError):
        return ServiceError(409, f"{exc.code.value}: {exc.message}")
    if isinstance(exc, SynthesisError):
        logger.error(f"Synthesis failed ({exc.code.value}): {exc.message}")
        if exc.retryable:
            return ServiceError(502, "Brief generation failed, please try again")
        return ServiceError(503, "Brief generation is currently unavailable")
    if isinstance(exc, SessionInvariantError):
        logger.error(f"Session invariant violated: {exc}")
    else:
        logger.error(f"Storage error: {exc}")
    return InternalServerError("An unexpected error occurred")


def get_owned_session(lifecycle: SessionLifecycle, session_id: str, user_id: str) -> Session:
    try:
        session = lifecycle.get_session(session_id)
    except ClarifierError as exc:
        raise to_http_error(exc)
    if session.user_id != user_id:
        # Other users' sessions are indistinguishable from missing ones
        logger.warning(f"User {user_id} requested session {session_id} owned by another user")
        raise NotFoundError("Session not found")
    return session


def json_response(status_code: int, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Response:
    return Response(
        status_code=status_code,
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps(body),
        headers=headers or {},
    )


@app.get("/rate-limit")
def get_rate_limit() -> Response:
    """
    Current quota decision for the caller.
    """
    user_id = require_user_id()
    decision = get_session_lifecycle().check_rate_limit(user_id)
    return json_response(200, decision.model_dump(mode="json"), rate_limit_headers(decision))


@app.post("/sessions")
def create_session() -> Response:
    """
    Create a questioning session, or 429 when the quota is used up.
    Expected body: {"domain": "business|product|creative|research|technical"}
    """
    user_id = require_user_id()
    request = parse_body(CreateSessionRequest)
    lifecycle = get_session_lifecycle()

    try:
        result = lifecycle.create_session(user_id, request.domain)
    except ClarifierError as exc:
        raise to_http_error(exc)

    if isinstance(result, RateLimitDecision):
        return rate_limited_response(result, user_id)

    decision = lifecycle.check_rate_limit(user_id)
    return json_response(201, result.model_dump(mode="json"), rate_limit_headers(decision))


@app.get("/sessions/<session_id>")
def get_session(session_id: str) -> Dict[str, Any]:
    user_id = require_user_id()
    session = get_owned_session(get_session_lifecycle(), session_id, user_id)
    return session.model_dump(mode="json")


@app.post("/sessions/<session_id>/turns")
def append_turn(session_id: str) -> Dict[str, Any]:
    """
    Append a conversation turn.
    Expected body: {"role": "user|assistant", "content": "..."}
    """
    user_id = require_user_id()
    request = parse_body(AppendTurnRequest)
    lifecycle = get_session_lifecycle()
    get_owned_session(lifecycle, session_id, user_id)

    try:
        session = lifecycle.append_turn(session_id, request.model_dump())
    except ClarifierError as exc:
        raise to_http_error(exc)
    return session.model_dump(mode="json")


@app.post("/sessions/<session_id>/generate")
def generate_brief(session_id: str) -> Dict[str, Any]:
    """
    Synthesize the brief and complete the session.
    """
    user_id = require_user_id()
    lifecycle = get_session_lifecycle()
    get_owned_session(lifecycle, session_id, user_id)

    try:
        session = lifecycle.generate_brief(session_id)
    except ClarifierError as exc:
        raise to_http_error(exc)
    return session.model_dump(mode="json")


@logger.inject_lambda_context
def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function handler.
    """
    return app.resolve(event, context)
