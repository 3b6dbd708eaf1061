"""
Redis Infrastructure Exceptions

Domain-specific exceptions for Redis operations.
Errors are never swallowed; original exceptions are chained.
"""

from typing import Optional, Any, Dict


class RedisException(Exception):
    """Base exception for Redis-related errors.

    All Redis operations should raise this or its subclasses.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        if original_error:
            self.details.setdefault("original_error", str(original_error))
            self.details.setdefault(
                "original_error_type", type(original_error).__name__
            )
        super().__init__(self.message)
        if original_error:
            self.__cause__ = original_error


class RedisConnectionException(RedisException):
    """Raised when Redis connection fails or is lost."""

    def __init__(
        self,
        message: str = "Redis connection failed",
        connection_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if connection_name:
            details["connection_name"] = connection_name

        super().__init__(
            message=message,
            error_code="REDIS_CONNECTION_ERROR",
            details=details,
            original_error=original_error,
        )


class RedisCircuitBreakerOpenException(RedisException):
    """Raised when Redis circuit breaker is open."""

    def __init__(
        self, message: str = "Redis circuit breaker is open - service unavailable"
    ):
        super().__init__(
            message=message,
            error_code="REDIS_CIRCUIT_BREAKER_OPEN",
            details={"service_status": "unavailable"},
        )


class RedisConfigurationException(RedisException):
    """Raised when Redis configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = str(config_value)

        super().__init__(
            message=message,
            error_code="REDIS_CONFIGURATION_ERROR",
            details=details,
            original_error=original_error,
        )
