import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError as PydanticValidationError

from clarifier.models.errors import (
    SessionNotFoundError,
    SessionStateError,
    SessionStateErrorCode,
    SessionStoreError,
)
from clarifier.models.session import BriefMetadata, ConversationTurn, Session, SessionStatus
from clarifier.services.aws import get_ddb_table

logger = Logger()


class SessionStore(Protocol):
    """Storage boundary for sessions and their conversation history."""

    def get_session(self, session_id: str) -> Optional[Session]:
        ...

    def put_session(self, session: Session) -> Session:
        ...

    def append_message(self, session_id: str, turn: ConversationTurn) -> Session:
        ...

    def complete_session(self, session_id: str, brief: str, brief_metadata: BriefMetadata) -> Session:
        ...


def _from_dynamo(value: Any) -> Any:
    """Convert DynamoDB Decimals back to ints/floats, recursively."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    if isinstance(value, dict):
        return {k: _from_dynamo(v) for k, v in value.items()}
    return value


def session_to_item(session: Session) -> Dict[str, Any]:
    return session.model_dump(mode="json", exclude_none=True, exclude={"question_count"})


def session_from_item(item: Dict[str, Any]) -> Session:
    data = _from_dynamo(item)
    data.pop("question_count", None)
    try:
        return Session(**data)
    except PydanticValidationError as e:
        raise SessionStoreError(f"Malformed session item {item.get('session_id')}: {e}") from e


def _state_conflict(session_id: str, current: Optional[Session], expected: SessionStatus) -> Exception:
    if current is None:
        return SessionNotFoundError(session_id)
    code = (
        SessionStateErrorCode.SESSION_COMPLETED
        if current.status == SessionStatus.COMPLETED
        else SessionStateErrorCode.INVALID_TRANSITION
    )
    return SessionStateError(
        f"Session {session_id} is {current.status.value}, expected {expected.value}", code
    )


class DynamoSessionStore:
    """
    Sessions in DynamoDB keyed by session_id.

    History is stored inline on the session item and appended with
    list_append, so turns keep their arrival order.
    """

    def __init__(self, table_name: str):
        self.table_name = table_name

    @property
    def table(self) -> Any:
        return get_ddb_table(self.table_name)

    def get_session(self, session_id: str) -> Optional[Session]:
        try:
            response = self.table.get_item(Key={"session_id": session_id}, ConsistentRead=True)
        except ClientError as e:
            raise SessionStoreError(
                f"DynamoDB error reading session {session_id}: {e.response['Error']['Message']}"
            ) from e
        except BotoCoreError as e:
            raise SessionStoreError(f"AWS connection error: {str(e)}") from e

        item = response.get("Item")
        return session_from_item(item) if item else None

    def put_session(self, session: Session) -> Session:
        """
        Create a new session item; an existing item is never overwritten.

        Raises:
            SessionStoreError: On a duplicate create or DynamoDB failure
        """
        try:
            self.table.put_item(
                Item=session_to_item(session),
                ConditionExpression="attribute_not_exists(session_id)",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise SessionStoreError(f"Session {session.session_id} already exists") from e
            raise SessionStoreError(
                f"DynamoDB error writing session {session.session_id}: {e.response['Error']['Message']}"
            ) from e
        except BotoCoreError as e:
            raise SessionStoreError(f"AWS connection error: {str(e)}") from e

        logger.info(f"Stored session {session.session_id} with status {session.status.value}")
        return session

    def append_message(self, session_id: str, turn: ConversationTurn) -> Session:
        """Append one turn while the session is still questioning."""
        try:
            response = self.table.update_item(
                Key={"session_id": session_id},
                UpdateExpression=(
                    "SET history = list_append(if_not_exists(history, :empty), :turn), "
                    "updated_at = :timestamp"
                ),
                ConditionExpression="attribute_exists(session_id) AND #status = :questioning",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":turn": [turn.model_dump(mode="json")],
                    ":empty": [],
                    ":timestamp": datetime.now(timezone.utc).isoformat(),
                    ":questioning": SessionStatus.QUESTIONING.value,
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise _state_conflict(
                    session_id, self.get_session(session_id), SessionStatus.QUESTIONING
                ) from e
            raise SessionStoreError(
                f"DynamoDB error appending to session {session_id}: {e.response['Error']['Message']}"
            ) from e
        except BotoCoreError as e:
            raise SessionStoreError(f"AWS connection error: {str(e)}") from e

        return session_from_item(response["Attributes"])

    def complete_session(self, session_id: str, brief: str, brief_metadata: BriefMetadata) -> Session:
        """
        Mark a questioning session completed and attach its brief.

        Only status, brief, brief_metadata and updated_at are written, so
        turns appended while the brief was being synthesized stay in history.
        """
        try:
            response = self.table.update_item(
                Key={"session_id": session_id},
                UpdateExpression=(
                    "SET #status = :completed, brief = :brief, "
                    "brief_metadata = :metadata, updated_at = :timestamp"
                ),
                ConditionExpression="attribute_exists(session_id) AND #status = :questioning",
                ExpressionAttributeNames={"#status": "status"},
                ExpressionAttributeValues={
                    ":completed": SessionStatus.COMPLETED.value,
                    ":questioning": SessionStatus.QUESTIONING.value,
                    ":brief": brief,
                    ":metadata": brief_metadata.model_dump(mode="json"),
                    ":timestamp": datetime.now(timezone.utc).isoformat(),
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise _state_conflict(
                    session_id, self.get_session(session_id), SessionStatus.QUESTIONING
                ) from e
            raise SessionStoreError(
                f"DynamoDB error completing session {session_id}: {e.response['Error']['Message']}"
            ) from e
        except BotoCoreError as e:
            raise SessionStoreError(f"AWS connection error: {str(e)}") from e

        logger.info(f"Stored session {session_id} with status {SessionStatus.COMPLETED.value}")
        return session_from_item(response["Attributes"])


class InMemorySessionStore:
    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.model_copy(deep=True) if session else None

    def put_session(self, session: Session) -> Session:
        with self._lock:
            if session.session_id in self._sessions:
                raise SessionStoreError(f"Session {session.session_id} already exists")
            self._sessions[session.session_id] = session.model_copy(deep=True)
        return session

    def append_message(self, session_id: str, turn: ConversationTurn) -> Session:
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None or current.status != SessionStatus.QUESTIONING:
                raise _state_conflict(session_id, current, SessionStatus.QUESTIONING)
            updated = current.model_copy(
                update={
                    "history": [*current.history, turn],
                    "updated_at": datetime.now(timezone.utc),
                },
                deep=True,
            )
            self._sessions[session_id] = updated
            return updated.model_copy(deep=True)

    def complete_session(self, session_id: str, brief: str, brief_metadata: BriefMetadata) -> Session:
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None or current.status != SessionStatus.QUESTIONING:
                raise _state_conflict(session_id, current, SessionStatus.QUESTIONING)
            updated = current.model_copy(
                update={
                    "status": SessionStatus.COMPLETED,
                    "brief": brief,
                    "brief_metadata": brief_metadata,
                    "updated_at": datetime.now(timezone.utc),
                },
                deep=True,
            )
            self._sessions[session_id] = updated
            return updated.model_copy(deep=True)
