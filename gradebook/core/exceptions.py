class GradebookError(Exception):
    """Base class for errors raised by the evaluation and analytics core."""


class GradingUnavailableError(GradebookError):
    """The external grading backend could not produce a result within the retry budget."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class InvalidGradingResponseError(GradebookError):
    """The grading backend answered, but not with a usable payload."""


class StatisticsNotFinalError(GradebookError):
    """Raised when persisting statistics while answers are still awaiting grading."""


class StatisticsInconsistentError(AssertionError):
    """Statistic counts do not add up to the number of questions.

    This is always a caller bug (a stale or partial recompute), never a state
    to tolerate at runtime.
    """
