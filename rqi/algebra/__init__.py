"""
Operators and single-eigenpair solvers.

Key functionalities provided include:
    - LinearOperator interface (apply, shifted_by, solve, adjoint, boundary_residual).
    - Dense and sparse matrix operators.
    - Second-order differential operators with Dirichlet conditions (Chebyshev collocation).
    - One- and two-sided Rayleigh quotient iteration (see `rqi.algebra.eigen`).
    - Reproducible initial guesses with explicit random generators.

This module uses lazy imports to minimize startup overhead.
"""

from typing import TYPE_CHECKING
import importlib

# -----------------------------------------------------------------------------------------------
# Lazy Import Configuration
# -----------------------------------------------------------------------------------------------

_LAZY_IMPORTS = {
    # Operators
    'LinearOperator'            : ('.operators', 'LinearOperator'),
    'MatrixOperator'            : ('.operators', 'MatrixOperator'),
    'as_operator'               : ('.operators', 'as_operator'),
    'solve'                     : ('.operators', 'solve'),
    'DifferentialOperator'      : ('.differential', 'DifferentialOperator'),
    'DirichletBC'               : ('.differential', 'DirichletBC'),
    # Initial guesses
    'random_unit_vector'        : ('.guesses', 'random_unit_vector'),
    'random_smooth_function'    : ('.guesses', 'random_smooth_function'),
    'random_matrix'             : ('.guesses', 'random_matrix'),
    # Eigen solvers (subpackage)
    'eigen'                     : ('.eigen', None),
    # Logger
    'get_logger'                : ('..common.flog', 'get_global_logger'),
}

_LAZY_CACHE = {}

if TYPE_CHECKING:
    from .operators     import LinearOperator, MatrixOperator, as_operator, solve
    from .differential  import DifferentialOperator, DirichletBC
    from .guesses       import random_unit_vector, random_smooth_function, random_matrix
    from .              import eigen

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
    result                  = module if attr_name is None else getattr(module, attr_name)
    _LAZY_CACHE[name]       = result
    return result

__all__ = list(_LAZY_IMPORTS.keys())

# ------------------------------------------------------------------------------------------------
#! EOF
# ------------------------------------------------------------------------------------------------
