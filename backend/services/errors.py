"""
Domain exceptions for the STX flow pipeline.

Every failure in the pipeline is a precondition violation surfaced
immediately; nothing here is meant to be retried.
"""


class FlowError(Exception):
    """Base class for all pipeline errors."""


class InvalidArgumentError(FlowError, ValueError):
    """An input violates a documented precondition (e.g. empty transaction list)."""


class UnsortedTransactionsError(InvalidArgumentError):
    """Transactions are not in non-decreasing timestamp order."""

    def __init__(self, index: int, previous: int, current: int):
        self.index = index
        self.previous = previous
        self.current = current
        super().__init__(
            f"Transactions must be sorted by timestamp: item {index} "
            f"({current}) precedes item {index - 1} ({previous})"
        )


class CSVFormatError(FlowError):
    """A transaction export could not be read."""

    def __init__(self, filename: str, reason: str):
        self.filename = filename
        self.reason = reason
        super().__init__(f"{filename}: {reason}")
