"""
Exception hierarchy for the probinfer engine.
"""


class ProbInferError(Exception):
    """Base exception for probinfer."""
    pass


class StructuralError(ProbInferError):
    """Malformed model or query: cycles, missing CPTs, unknown identifiers."""
    pass


class NormalizationError(ProbInferError):
    """Probability rows that do not sum to 1 or evidence with zero probability."""
    pass


class DomainError(ProbInferError):
    """Observation symbol or evidence value outside the declared domain."""
    pass


class ConvergenceFailure(ProbInferError):
    """Iterative algorithm stopped at max_iterations without converging."""

    def __init__(self, message: str, iterations: int = 0, result=None):
        self.iterations = iterations
        self.result = result
        super().__init__(message)


class SchemaValidationError(StructuralError):
    """Input data does not match the expected model schema."""
    pass


class InputError(ProbInferError):
    """Input file missing, unreadable or not valid JSON."""
    pass
