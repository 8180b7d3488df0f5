from enum import Enum
from typing import Any, Dict, Optional


class ClarifierError(Exception):
    """Base exception for the brief-synthesis pipeline"""

    pass


class ValidationError(ClarifierError):
    """Caller-supplied data violates a structural contract"""

    def __init__(self, message: str, field: str):
        super().__init__(message)
        self.message = message
        self.field = field


class SynthesisErrorCode(str, Enum):
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    SYNTHESIS_DISABLED = "SYNTHESIS_DISABLED"
    MODEL_TIMEOUT = "MODEL_TIMEOUT"
    MODEL_INVOCATION_FAILED = "MODEL_INVOCATION_FAILED"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"


CONFIGURATION_ERROR_CODES = frozenset(
    {SynthesisErrorCode.MISSING_CREDENTIALS, SynthesisErrorCode.SYNTHESIS_DISABLED}
)


class SynthesisError(ClarifierError):
    """Configuration or model gateway failure while synthesizing a brief"""

    def __init__(
        self,
        message: str,
        code: SynthesisErrorCode,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.original_error = original_error

    @property
    def retryable(self) -> bool:
        """Configuration failures need remediation before a retry makes sense."""
        return self.code not in CONFIGURATION_ERROR_CODES


class QuotaStoreError(ClarifierError):
    """Usage profile storage could not be read or updated"""

    pass


class QuotaExceededException(ClarifierError):
    """Exception raised when the storage-level guard rejects a usage increment"""

    def __init__(self, message: str, quota_info: Optional[Dict[str, Any]] = None):
        self.message = message
        self.quota_info = quota_info or {}
        super().__init__(self.message)


class SessionStoreError(ClarifierError):
    """Session storage could not be read or updated"""

    pass


class SessionNotFoundError(ClarifierError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found.")
        self.session_id = session_id


class SessionStateErrorCode(str, Enum):
    SESSION_COMPLETED = "SESSION_COMPLETED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    MIN_QUESTIONS_NOT_MET = "MIN_QUESTIONS_NOT_MET"


class SessionStateError(ClarifierError):
    """Operation not permitted in the session's current state"""

    def __init__(self, message: str, code: SessionStateErrorCode):
        super().__init__(message)
        self.message = message
        self.code = code


class SessionInvariantError(ClarifierError):
    """Stored history failed validation during generation; it was validated on append"""

    pass
