from __future__ import annotations


class MirrorError(Exception):
    """Base class for failures that end a single pipeline run.

    ``stage`` is filled in by the pipeline with the stage the run ended at.
    """

    stage: str | None = None


class ConfigurationError(MirrorError):
    """Missing or malformed startup configuration. Fatal at startup."""


class DecodeError(MirrorError):
    """Webhook body is not a valid notification batch."""


class AggregatorError(MirrorError):
    """Transport, HTTP or JSON failure talking to the swap aggregator.

    ``step`` is ``"quote"`` or ``"swap"`` depending on which call failed.
    """

    def __init__(self, message: str, step: str = "quote"):
        super().__init__(message)
        self.step = step


class NoRouteFound(AggregatorError):
    def __init__(self, message: str):
        super().__init__(message, step="quote")


class SwapTransactionMissing(AggregatorError):
    def __init__(self, message: str):
        super().__init__(message, step="swap")


class SigningError(MirrorError):
    """Aggregator transaction could not be decoded or signed."""


class SubmissionError(MirrorError):
    pass


class ConfirmationTimeout(SubmissionError):
    def __init__(self, signature: str, waited_sec: float):
        super().__init__(f"Transaction {signature} not confirmed after {waited_sec:.1f}s")
        self.signature = signature
        self.waited_sec = waited_sec
