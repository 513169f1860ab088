"""Exceptions raised while building, transcribing, and solving problems."""


class ConfigurationError(ValueError):
    """Raised for invalid domains, discretizations, or problem declarations.
    These are detected before any solver is invoked."""
    pass


class SolverError(RuntimeError):
    """
    Base class for failures reported by the NLP solver.

    Parameters
    ----------
    message : str
        Human-readable description of the failure.
    result : `NLPResult`, optional
        The (non-optimal) result returned by the solver, including the best
        iterate found.
    """
    def __init__(self, message, result=None):
        super().__init__(message)
        self.result = result


class InfeasibleProblem(SolverError):
    """The solver could not find a point satisfying all constraints."""
    pass


class ConvergenceFailure(SolverError):
    """The solver exhausted its iteration or time budget before converging.
    The best iterate is available as `result.x`."""
    pass


class NumericalError(SolverError):
    """The solve attempt broke down numerically, e.g. due to a singular
    constraint Jacobian or non-finite function values."""
    pass
