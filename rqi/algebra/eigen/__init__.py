"""
Single-Eigenpair Solvers Module

Rayleigh quotient iteration for matrices and discretized differential operators.

Available Solvers:
    - RayleighQuotientIteration         : one-sided, cubic for self-adjoint operators
    - TwoSidedRayleighQuotientIteration : right and left vectors, cubic for any operator
    - rayleigh_quotient_iteration       : functional interface with a `two_sided` flag

Standard Result:
    - RQIResult: eigenvalue, eigenvector(s), residual history, status

This module uses lazy imports to minimize startup overhead.
"""

from typing import TYPE_CHECKING
import importlib

# -----------------------------------------------------------------------------------------------
# Lazy Import Configuration
# -----------------------------------------------------------------------------------------------

_LAZY_IMPORTS = {
    # Engines
    'RayleighQuotientIteration'         : ('.rqi', 'RayleighQuotientIteration'),
    'TwoSidedRayleighQuotientIteration' : ('.rqi', 'TwoSidedRayleighQuotientIteration'),
    'rayleigh_quotient_iteration'       : ('.rqi', 'rayleigh_quotient_iteration'),
    'residual'                          : ('.rqi', 'residual'),
    # Residual bookkeeping
    'ResidualMonitor'                   : ('.monitor', 'ResidualMonitor'),
    'relative_residual'                 : ('.monitor', 'relative_residual'),
    # Result and errors
    'RQIResult'                         : ('.result', 'RQIResult'),
    'RQIStatus'                         : ('.result', 'RQIStatus'),
    'EigenErrorMsg'                     : ('.result', 'EigenErrorMsg'),
    'EigenSolverError'                  : ('.result', 'EigenSolverError'),
    'InvalidInputError'                 : ('.result', 'InvalidInputError'),
    'SingularSystemError'               : ('.result', 'SingularSystemError'),
    'ConvergenceFailureError'           : ('.result', 'ConvergenceFailureError'),
}

_LAZY_CACHE = {}

if TYPE_CHECKING:
    from .rqi       import RayleighQuotientIteration, TwoSidedRayleighQuotientIteration, rayleigh_quotient_iteration, residual
    from .monitor   import ResidualMonitor, relative_residual
    from .result    import (RQIResult, RQIStatus, EigenErrorMsg, EigenSolverError,
                            InvalidInputError, SingularSystemError, ConvergenceFailureError)

# -----------------------------------------------------------------------------------------------

def __getattr__(name: str):
    """
    Module-level __getattr__ for lazy imports.
    """
    if name in _LAZY_CACHE:
        return _LAZY_CACHE[name]

    if name not in _LAZY_IMPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_path, attr_name  = _LAZY_IMPORTS[name]
    module                  = importlib.import_module(module_path, package=__name__)
    result                  = getattr(module, attr_name)
    _LAZY_CACHE[name]       = result
    return result

__all__ = list(_LAZY_IMPORTS.keys())

# ------------------------------------------------------------------------------------------------
#! EOF
# ------------------------------------------------------------------------------------------------
