"""
Standardized exception hierarchy for the pet progression engine
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class SoulPetError(Exception):
    """
    Base exception for all soulpet errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - Automatic logging

    Example:
        raise SoulPetError(
            message="Failed to save pet progress",
            user_id="user-123",
            operation="complete_step",
            context={"challenge_id": "dog_breathing_daily"}
        )
    """

    log_level = logging.ERROR

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(
                self.log_level,
                f"{self.__class__.__name__}: {self.message}",
                extra=log_data,
                exc_info=self.cause
            )
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (User Input)
# ==========================================

class ValidationError(SoulPetError):
    """
    Raised when caller input fails validation

    Examples:
    - Non-positive progress increment
    - Record belonging to another user

    Example:
        raise ValidationError(
            message="Increment must be a positive integer",
            field="amount",
            value=0,
            user_id="user-123"
        )
    """

    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            user_message=f"Invalid {field}: {message}" if field else message,
            context={"field": field, "value": value},
            **kwargs
        )


class ChallengeNotFoundError(SoulPetError):
    """Unknown challenge, or a challenge that belongs to another companion"""

    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        challenge_id: Optional[str] = None,
        companion_type: Optional[str] = None,
        **kwargs
    ):
        self.challenge_id = challenge_id
        self.companion_type = companion_type
        super().__init__(
            message=message,
            user_message="That challenge isn't available for this companion.",
            context={"challenge_id": challenge_id, "companion_type": companion_type},
            **kwargs
        )


# ==========================================
# Persistence Errors
# ==========================================

class PersistenceError(SoulPetError):
    """
    Storage or network failure while reading or writing progress

    Transient failures are retried from the write outbox and never surface
    to the caller of complete_step.
    """

    def __init__(
        self,
        message: str,
        record_key: Optional[tuple] = None,
        transient: bool = True,
        **kwargs
    ):
        self.record_key = record_key
        self.transient = transient
        context = kwargs.pop("context", None) or {}
        context.update({"record_key": record_key, "transient": transient})
        super().__init__(
            message=message,
            user_message="Your progress is saved on this device and will sync shortly.",
            context=context,
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(SoulPetError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            user_message="The system is not properly configured. Please contact support.",
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    record_key: Optional[tuple] = None,
    context: Optional[Dict[str, Any]] = None
) -> SoulPetError:
    """
    Wrap storage driver exceptions into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        record_key: Natural key of the record being written
        context: Additional context

    Returns:
        PersistenceError for driver/network failures, SoulPetError otherwise

    Example:
        try:
            await cur.execute(query, params)
        except psycopg.Error as e:
            raise wrap_external_exception(
                e,
                operation="upsert_companion_progress",
                user_id="user-123",
                record_key=("user-123", "dog")
            )
    """
    import psycopg

    if isinstance(error, SoulPetError):
        return error

    # Connection-level failures are worth retrying
    if isinstance(error, (psycopg.OperationalError, TimeoutError, OSError)):
        return PersistenceError(
            message=f"Storage unavailable: {str(error)}",
            record_key=record_key,
            transient=True,
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return PersistenceError(
            message=f"Storage query failed: {str(error)}",
            record_key=record_key,
            transient=False,
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )

    # Generic fallback
    return SoulPetError(
        message=f"{operation} failed: {str(error)}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
