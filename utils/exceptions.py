# utils/exceptions.py
# Central place for the small custom exceptions used across the codebase.

class PrevalenceError(Exception):
    """Common base so callers can catch every estimator failure at once."""
    pass

class InvalidInputError(PrevalenceError, ValueError):
    """
    Raised when an EstimationRequest carries malformed counts (negative,
    k > n, k_u > n_u, k_v > n_v) or non-finite / non-positive shape
    parameters. Validation runs before any random draw is consumed.
    """
    pass

class SamplingExhaustedError(PrevalenceError, RuntimeError):
    """
    Raised when the rejection loop of the validation sampler cannot find an
    admissible (u, v) pair within *max_attempts* draws. A fresh seed may
    succeed; the parameters may also make u < v almost impossible.
    """
    def __init__(self, message: str, *, attempts: int, index: int | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.index    = index

class IllPosedEstimateError(PrevalenceError, RuntimeError):
    """
    Raised when the normalisation total of the grid integral is zero or
    non-finite, i.e. the posterior density is undefined for these inputs.
    """
    pass

class EstimationCancelledError(PrevalenceError, RuntimeError):
    """Raised when the caller's cancel event is set mid-integration."""
    pass
