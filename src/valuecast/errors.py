"""Engine error taxonomy.

Engines raise these; only the task dispatcher catches them and turns them
into ``{id, error}`` responses.
"""


class EngineError(Exception):
    """Base class for all engine failures."""


class ValidationError(EngineError):
    """Input rejected before any computation ran."""


class NotPositiveSemiDefiniteError(ValidationError):
    """Correlation matrix cannot be Cholesky-decomposed."""


class ComputationError(EngineError):
    """Numerical degeneracy that validation did not catch."""


class CalculationCancelled(ComputationError):
    """Caller asked for the running calculation to stop."""

    def __init__(self, message: str = "Calculation cancelled"):
        super().__init__(message)


class ProtocolError(EngineError):
    """Malformed request message."""


class UnknownTaskTypeError(ProtocolError):
    def __init__(self, task_type):
        self.task_type = task_type
        super().__init__(f"Unknown calculation type: {task_type}")
