"""
Cache Domain Exceptions
"""

from typing import Any, Dict, Optional


class CacheConfigurationError(ValueError):
    """Raised when cache configuration is missing or invalid.

    Configuration problems are fatal at construction time: no partially
    configured manager or handler is ever returned.
    """

    def __init__(
        self,
        message: str,
        connection_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.connection_name = connection_name
        self.details = details or {}
        super().__init__(self.message)
