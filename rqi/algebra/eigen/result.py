"""
Rayleigh Quotient Iteration Result Types

Standardized result container and error taxonomy for the single-eigenpair
refinement engines.

Errors:
    - InvalidInputError         : bad input, raised before any iteration
    - SingularSystemError       : shifted solve or two-sided quotient could not be regularized
    - ConvergenceFailureError   : tolerance not reached within `maxiter` iterations

The last two carry the last valid `RQIResult` so the caller can retry with a
different guess, shift or tolerance.
"""

import numpy as np
from enum import Enum, auto, unique
from typing import Optional, NamedTuple, Union
from numpy.typing import NDArray

# -----------------------------------------------------------------------------
#! Errors
# -----------------------------------------------------------------------------

class EigenErrorMsg(Enum):
    '''
    Enumeration class for eigen solver error messages.
    '''
    INVALID_INPUT       = 201
    DIM_MISMATCH        = 202
    ZERO_VECTOR         = 203
    NOT_SQUARE          = 204
    BC_INVALID          = 205
    MAT_SINGULAR        = 206
    DENOM_COLLAPSE      = 207
    CONV_FAILED         = 208
    ADJOINT_NA          = 209

    def __str__(self):
        return self.name.replace('_', ' ').title()

    def __repr__(self):
        return f"<{self.__class__.__name__}.{self.name}: '{str(self)}'>"

class EigenSolverError(Exception):
    '''
    Base class for exceptions in the eigen module.
    '''
    def __init__(self, code: EigenErrorMsg, message: Optional[str] = None, result: Optional['RQIResult'] = None):
        self.code       = code
        self.message    = message if message else str(code)
        self.result     = result
        super().__init__(self.message)

    def __str__(self):
        return f"[EigenSolverError {self.code.name} ({self.code.value})]: {self.message}"

    def __repr__(self):
        return self.__str__()

class InvalidInputError(EigenSolverError, ValueError):
    ''' Zero-norm guess, non-square matrix, mismatched dimensions or malformed boundary conditions. '''

    def __init__(self, message: Optional[str] = None, code: EigenErrorMsg = EigenErrorMsg.INVALID_INPUT):
        super().__init__(code, message)

class SingularSystemError(EigenSolverError):
    ''' The shifted system (or the two-sided quotient denominator) cannot be regularized. '''

    def __init__(self, message: Optional[str] = None, code: EigenErrorMsg = EigenErrorMsg.MAT_SINGULAR, result=None):
        super().__init__(code, message, result)

class ConvergenceFailureError(EigenSolverError):
    ''' The residual did not reach the tolerance within `maxiter` iterations. '''

    def __init__(self, message: Optional[str] = None, result=None):
        super().__init__(EigenErrorMsg.CONV_FAILED, message, result)

# -----------------------------------------------------------------------------
#! Result
# -----------------------------------------------------------------------------

@unique
class RQIStatus(Enum):
    """
    Outcome of a Rayleigh quotient iteration run.
    """
    CONVERGED   = auto()    # last residual <= tol
    MAX_ITER    = auto()    # maxiter reached, ConvergenceFailure
    SINGULAR    = auto()    # SingularSystem, last valid pair returned
    STOPPED     = auto()    # callback requested a stop between iterations

Scalar = Union[float, complex]

class RQIResult(NamedTuple):
    r"""
    Result of a (two-sided) Rayleigh quotient iteration.

    Attributes:
        eigenvalue:
            Final eigenvalue estimate, the (generalized) Rayleigh quotient of the final vectors
        eigenvector:
            Final right eigenvector estimate u, unit norm in the operator's norm
        left_eigenvector:
            Final left eigenvector estimate v (two-sided mode only)
        residuals:
            Residual history, initial guess first, one entry per completed iteration
        iterations:
            Number of completed iterations
        converged:
            Whether the last residual is below the tolerance
        status:
            RQIStatus of the run
        message:
            Human readable summary (failure reason)
    """
    eigenvalue          : Scalar
    eigenvector         : NDArray
    left_eigenvector    : Optional[NDArray] = None
    residuals           : Optional[NDArray] = None
    iterations          : int               = 0
    converged           : bool              = False
    status              : RQIStatus         = RQIStatus.MAX_ITER
    message             : str               = ''

    @property
    def residual_norm(self) -> float:
        ''' Last residual of the history. '''
        if self.residuals is None or len(self.residuals) == 0:
            return np.nan
        return float(self.residuals[-1])

    @property
    def history_length(self) -> int:
        return 0 if self.residuals is None else len(self.residuals)

    def __repr__(self):
        return (f"RQIResult(eigenvalue={self.eigenvalue}, status={self.status.name}, "
                f"iterations={self.iterations}, residual={self.residual_norm:.3e})")

    def __str__(self):
        return f'converged={self.converged}, iterations={self.iterations}'

# ------------------------------------------------------------------------------------------------
#! EOF
# ------------------------------------------------------------------------------------------------
