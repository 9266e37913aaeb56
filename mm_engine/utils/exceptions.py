"""
Market Maker Exceptions
======================

Error taxonomy for the decision engine. Only ConfigurationError is fatal;
every other condition is handled inside the tick and degrades to
"no new quotes this tick".
"""

from typing import Any, Dict, Optional


class MarketMakerError(Exception):
    """Base exception for engine errors"""

    def __init__(self,
                 message: str,
                 error_code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and monitoring"""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'error_code': self.error_code,
            'details': self.details
        }


class ConfigurationError(MarketMakerError):
    """Invalid static configuration. Raised at startup, aborts the run."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, error_code=kwargs.pop('error_code', 'CONFIG'), **kwargs)
        self.config_key = config_key


class DegenerateMarketCondition(MarketMakerError):
    """Empty/crossed book, zero depth or non-finite arithmetic for a single tick"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code=kwargs.pop('error_code', 'DEGENERATE_MARKET'), **kwargs)


class ExecutionError(MarketMakerError):
    """Submit or cancel rejected by the execution venue"""

    def __init__(self, message: str, order_id: Optional[int] = None, **kwargs):
        super().__init__(message, error_code=kwargs.pop('error_code', 'EXECUTION'), **kwargs)
        self.order_id = order_id


class ReconciliationMismatch(MarketMakerError):
    """Venue reported an event for an order id the tracker does not know"""

    def __init__(self, message: str, order_id: Optional[int] = None, **kwargs):
        super().__init__(message, error_code=kwargs.pop('error_code', 'RECONCILE'), **kwargs)
        self.order_id = order_id
