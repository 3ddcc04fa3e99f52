from __future__ import annotations


class QRLeadError(Exception):
    """Base class for all pipeline errors."""


class InputError(QRLeadError):
    """Payload is empty or whitespace-only."""


class ParseError(QRLeadError):
    """A structured payload could not be parsed."""


class VCardParseError(ParseError):
    pass


class StrategyFailure(QRLeadError):
    """A single cascade strategy failed; always recovered by the caller."""


class ProviderError(StrategyFailure):
    """An AI provider call failed (timeout, non-2xx, unparsable reply)."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class DeadlineExceeded(StrategyFailure):
    pass


class RetryExhausted(StrategyFailure):
    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        super().__init__(f"all {attempts} attempts failed: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class ConfigError(QRLeadError):
    pass
