"""
Error taxonomy for conversational turns.

Every failure a turn can hit is one of these; callers of the orchestrator
only ever see a single exception per failed turn.
"""

from typing import Optional


class RecallAgentError(Exception):
    """Base class for all recall-agent errors"""

    error_code = "internal_error"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class Unauthorized(RecallAgentError):
    """Missing, malformed, expired or forged session credential"""

    error_code = "unauthorized"


class ConversationAccessDenied(Unauthorized):
    """Conversation does not belong to the authenticated user"""

    error_code = "conversation_access_denied"


class ProviderError(RecallAgentError):
    """Embedding or generation backend failed or timed out"""

    error_code = "provider_error"

    def __init__(self, provider: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{provider}: {message}", cause)
        self.provider = provider


class DimensionMismatch(RecallAgentError):
    """Two vectors compared for similarity have different lengths"""

    error_code = "dimension_mismatch"

    def __init__(self, left: int, right: int):
        super().__init__(f"vector length mismatch: {left} != {right}")
        self.left = left
        self.right = right


class StorageError(RecallAgentError):
    """Relational persistence failed"""

    error_code = "storage_error"
