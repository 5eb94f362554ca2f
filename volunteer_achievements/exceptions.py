"""
Standardized exception hierarchy for the achievement engine
Provides rich context and consistent logging for evaluation, award and store failures
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

import psycopg

logger = logging.getLogger(__name__)


class AchievementEngineError(Exception):
    """
    Base exception for all achievement engine errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User and achievement context
    - Structured context
    - Automatic logging

    Example:
        raise AchievementEngineError(
            message="Failed to persist award",
            user_id=42,
            achievement_id=7,
            operation="award",
            context={"rule_kind": "hours"}
        )
    """

    def __init__(
        self,
        message: str,
        user_id: Optional[int] = None,
        achievement_id: Optional[int] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.achievement_id = achievement_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
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
            "achievement_id": self.achievement_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for callers that report failures"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_id": self.user_id,
            "achievement_id": self.achievement_id,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Evaluation Errors
# ==========================================

class EvaluationError(AchievementEngineError):
    """
    Raised when evaluating a rule, persisting an award or emitting
    a notification/audit event fails.

    `awarded` and `updated` hold what the batch committed before the
    failure, so callers can tell "nothing happened" from a partial run.
    """

    def __init__(
        self,
        message: str,
        awarded: int = 0,
        updated: int = 0,
        **kwargs
    ):
        self.awarded = awarded
        self.updated = updated
        super().__init__(message=message, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["awarded"] = self.awarded
        data["updated"] = self.updated
        return data


class NotFoundError(AchievementEngineError):
    """Requested award or achievement does not exist"""

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[Any] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(EvaluationError):
    """
    Base class for database-related errors

    Store failures abort evaluation like any other EvaluationError
    """
    pass


class ConnectionError(DatabaseError):
    """Database connection failed"""

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(message=message, **kwargs)


class QueryError(DatabaseError):
    """Database query execution failed"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        context = kwargs.pop("context", None) or {}
        context["query"] = query
        super().__init__(message=message, context=context, **kwargs)


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(AchievementEngineError):
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
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[int] = None,
    achievement_id: Optional[int] = None,
    context: Optional[Dict[str, Any]] = None
) -> AchievementEngineError:
    """
    Wrap external exceptions (psycopg, sink failures, etc.) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        achievement_id: Achievement ID if applicable
        context: Additional context

    Returns:
        Appropriate AchievementEngineError subclass (errors already in
        the hierarchy are returned unchanged)

    Example:
        try:
            await notifier.notify(user_id, "achievement_earned", payload)
        except Exception as e:
            raise wrap_external_exception(
                e,
                operation="award",
                user_id=user_id,
                achievement_id=achievement_id
            ) from e
    """
    if isinstance(error, AchievementEngineError):
        return error

    if isinstance(error, psycopg.OperationalError):
        return ConnectionError(
            message=f"Database connection failed: {str(error)}",
            user_id=user_id,
            achievement_id=achievement_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {str(error)}",
            user_id=user_id,
            achievement_id=achievement_id,
            operation=operation,
            context=context,
            cause=error
        )

    return EvaluationError(
        message=f"{operation} failed: {str(error)}",
        user_id=user_id,
        achievement_id=achievement_id,
        operation=operation,
        context=context,
        cause=error
    )
