"""
Custom exception classes for the sniper bot.

Provides typed exceptions for better error handling and debugging.
"""

class BotException(Exception):
    """Base exception for all bot-related errors."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self):
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class FeedConnectionError(BotException):
    """Raised when a market feed subscription fails or errors."""
    pass


class TradeExecutionFailure(BotException):
    """Raised when a buy or sell returns no transaction handle."""
    pass


class RequestFailure(BotException):
    """Raised when the trade API retry budget is exhausted."""

    def __init__(self, message: str, attempts: int = 0, status: int | None = None, **context):
        super().__init__(message, attempts=attempts, status=status, **context)
        self.attempts = attempts
        self.status = status


class ConfigurationException(BotException):
    """Raised when configuration is invalid."""
    pass


class WalletException(BotException):
    """Raised when wallet operations fail."""
    pass
