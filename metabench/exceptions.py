"""Exceptions raised by the benchmarking harness."""


class BenchmarkError(Exception):
    """Base class for every harness failure."""


class InvalidSampleError(BenchmarkError, ValueError):
    """A negative duration was offered to an accumulator."""


class EmptyAccumulatorError(BenchmarkError):
    """Statistics were requested before any sample was recorded."""


class HarnessUsageError(BenchmarkError):
    """A setup or teardown action failed. Always aborts the run."""


class TrialOperationError(BenchmarkError):
    """A measured operation failed.

    Isolated at the trial boundary: logged and counted as a completed trial.
    """


class ServiceError(TrialOperationError):
    """A call to the metadata service failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PreconditionError(BenchmarkError):
    """The starting state a scenario needs could not be established."""


class ServiceUnreachableError(BenchmarkError):
    """No connection to the metadata service could be made."""
