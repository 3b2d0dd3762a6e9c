r"""
Reproducible initial guesses and test operators.

Every generator takes an explicit `numpy.random.Generator` (or a seed), no
global random state is touched:

- random_unit_vector     : Gaussian / uniform vector, optionally complex, unit 2-norm
- random_smooth_function : random trigonometric series sampled at the nodes of a
                           DifferentialOperator, unit L2 norm
- random_matrix          : Gaussian square matrix, symmetrized as A + A^T on request
"""

from __future__ import annotations

from typing import Optional, Union
import numpy as np
import numpy.random as npr

from .operators import LinearOperator
from .eigen.result import InvalidInputError

RandomState = Union[None, int, npr.Generator]

def _rng(rng: RandomState) -> npr.Generator:
    if isinstance(rng, npr.Generator):
        return rng
    return npr.default_rng(rng)

# ----------------------------------------------------------------------------------------

def random_unit_vector(n: int, rng: RandomState = None, complex_valued: bool = False, uniform: bool = True) -> np.ndarray:
    """
    Random vector of unit 2-norm.

    Args:
        n:
            Length.
        rng:
            Generator or seed.
        complex_valued:
            Add a Gaussian imaginary part (needed to reach complex eigenvalues
            of real nonsymmetric matrices).
        uniform:
            Real part uniform in [0, 1) (True) or standard normal (False).
    """
    if n < 1:
        raise InvalidInputError(f"Vector length must be positive, got {n}")
    rng = _rng(rng)
    x   = rng.random(n) if uniform else rng.standard_normal(n)
    if complex_valued:
        x = x + 1j * rng.standard_normal(n)
    return x / np.linalg.norm(x)

def random_matrix(n: int, rng: RandomState = None, symmetric: bool = False) -> np.ndarray:
    """
    Standard normal n x n matrix; with symmetric=True returns A + A^T.
    """
    if n < 1:
        raise InvalidInputError(f"Matrix size must be positive, got {n}")
    A = _rng(rng).standard_normal((n, n))
    return A + A.T if symmetric else A

def random_smooth_function(op: LinearOperator, rng: RandomState = None, wavelength: float = 0.1) -> np.ndarray:
    """
    Random smooth function on the domain of a differential operator, given by
    its node values and normalized in the operator's L2 norm.

    The function is a trigonometric series with independent normal
    coefficients, scaled by 1/sqrt(m), whose shortest period is about
    `wavelength`. The number of modes is capped at n // 8 so that the
    series stays resolved by the n + 1 collocation nodes.
    """
    if not hasattr(op, 'points') or not hasattr(op, 'domain'):
        raise InvalidInputError("random_smooth_function needs an operator with collocation points and a domain")
    if not wavelength > 0:
        raise InvalidInputError(f"wavelength must be positive, got {wavelength!r}")

    rng     = _rng(rng)
    a, b    = op.domain
    length  = b - a
    m       = max(min(int(np.floor(length / wavelength)), op.n // 8), 1)
    k       = np.arange(m + 1)
    theta   = 2.0 * np.pi * np.outer((op.points - a) / length, k)
    coef_c  = rng.standard_normal(m + 1)
    coef_s  = rng.standard_normal(m + 1)
    f       = (np.cos(theta) @ coef_c + np.sin(theta) @ coef_s) / np.sqrt(m + 1)
    return f / op.norm(f)

# ------------------------------------------------------------------------------------------------
#! EOF
# ------------------------------------------------------------------------------------------------
