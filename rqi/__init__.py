# rqi/__init__.py

"""
RQI - Rayleigh quotient iteration for matrices and differential operators.

Refines a single eigenpair (lambda, u) of an operator A from an approximate
eigenvalue and eigenvector by repeated shift-and-invert steps. Local
convergence is cubic for self-adjoint operators, quadratic otherwise, and
cubic again for the two-sided variant that also tracks a left eigenvector.

Modules:
--------
- algebra   : operators (matrix, differential), initial guesses, eigen solvers
- common    : logging

Examples:
---------
>>> import numpy as np
>>> import rqi
>>> A   = rqi.random_matrix(10, rng=10, symmetric=True)
>>> u0  = rqi.random_unit_vector(10, rng=10)
>>> res = rqi.rayleigh_quotient_iteration(A, A[-1, -1], u0)
>>> res.converged, res.residuals

Version : 0.1.0
License : MIT
"""

import importlib

# Package metadata
__version__         = "0.1.0"
__license__         = "MIT"

MODULE_DESCRIPTION  = "Rayleigh quotient iteration (one- and two-sided) for matrices and differential operators."

# Subpackages (not imported by default)
_MODULES            = ["algebra", "common"]

# Convenience exports, resolved lazily
_LAZY_IMPORTS = {
    'RayleighQuotientIteration'         : ('.algebra.eigen.rqi', 'RayleighQuotientIteration'),
    'TwoSidedRayleighQuotientIteration' : ('.algebra.eigen.rqi', 'TwoSidedRayleighQuotientIteration'),
    'rayleigh_quotient_iteration'       : ('.algebra.eigen.rqi', 'rayleigh_quotient_iteration'),
    'ResidualMonitor'                   : ('.algebra.eigen.monitor', 'ResidualMonitor'),
    'RQIResult'                         : ('.algebra.eigen.result', 'RQIResult'),
    'RQIStatus'                         : ('.algebra.eigen.result', 'RQIStatus'),
    'InvalidInputError'                 : ('.algebra.eigen.result', 'InvalidInputError'),
    'SingularSystemError'               : ('.algebra.eigen.result', 'SingularSystemError'),
    'ConvergenceFailureError'           : ('.algebra.eigen.result', 'ConvergenceFailureError'),
    'LinearOperator'                    : ('.algebra.operators', 'LinearOperator'),
    'MatrixOperator'                    : ('.algebra.operators', 'MatrixOperator'),
    'DifferentialOperator'              : ('.algebra.differential', 'DifferentialOperator'),
    'DirichletBC'                       : ('.algebra.differential', 'DirichletBC'),
    'random_unit_vector'                : ('.algebra.guesses', 'random_unit_vector'),
    'random_smooth_function'            : ('.algebra.guesses', 'random_smooth_function'),
    'random_matrix'                     : ('.algebra.guesses', 'random_matrix'),
    'get_global_logger'                 : ('.common.flog', 'get_global_logger'),
}

__all__             = _MODULES + list(_LAZY_IMPORTS.keys())

def get_module_description(module_name):
    """
    Get the description of a subpackage.

    Parameters
    ----------
    module_name : str
        The name of the module.

    Returns
    -------
    str
        The description of the module.
    """
    descriptions = {
        "algebra"   : "Linear operators (dense/sparse matrices, Chebyshev differential operators) and Rayleigh quotient iteration.",
        "common"    : "Logging with verbosity control.",
    }
    return descriptions.get(module_name, "Module not found.")

# Lazy import subpackages and exports on attribute access (PEP 562)
def __getattr__(name):
    if name in _MODULES:
        return importlib.import_module(f".{name}", __name__)
    if name in _LAZY_IMPORTS:
        module_path, attr_name = _LAZY_IMPORTS[name]
        return getattr(importlib.import_module(module_path, __name__), attr_name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")

def __dir__():
    return sorted(list(globals().keys()) + __all__)

# ---------------------------------------------------------------------
#! EOF
# ---------------------------------------------------------------------
