r"""
Second-order linear differential operators with Dirichlet boundary conditions

$$
(A u)(x) = a_2(x) u''(x) + a_1(x) u'(x) + a_0(x) u(x),\quad x \in [a, b],
\qquad u(a) = \alpha,\; u(b) = \beta,
$$

discretized by Chebyshev collocation at a fixed number of Chebyshev-Lobatto
points. Functions are represented by their values at the (ascending) nodes,
norms and inner products are the L2 ones on [a, b] computed with
Clenshaw-Curtis quadrature.

The resolution `n` is fixed, there is no adaptivity.
In `solve` the first and last collocation rows are replaced by the boundary
rows, so the solution satisfies the boundary conditions exactly while `apply`
acts with the full collocation matrix.

Adjoint rule (constant a_1, a_2 and homogeneous Dirichlet data):

$$
A^* v = \bar a_2 v'' - \bar a_1 v' + \bar a_0 v,\qquad v(a) = v(b) = 0,
$$

i.e. coefficients are conjugated and the odd-order term flips sign. The
boundary terms of the integration by parts vanish because both u and v vanish
at the endpoints.

References:
    - L. N. Trefethen, "Spectral Methods in MATLAB", SIAM 2000 (cheb, clencurt)
"""

import numpy as np
from functools import lru_cache
from typing import Optional, Sequence, Tuple, Union, Callable, NamedTuple, Any, TYPE_CHECKING
from numpy.typing import NDArray

from .operators import LinearOperator, solve_dense, Scalar
from .eigen.result import InvalidInputError, EigenErrorMsg

if TYPE_CHECKING:
    from ..common.flog import Logger

Coefficient = Union[Scalar, Callable[[NDArray], NDArray]]

DEFAULT_COLLOCATION_N   = 32
MIN_COLLOCATION_N       = 4

# ----------------------------------------------------------------------------------------
#! Chebyshev toolbox on the reference interval [-1, 1]
# ----------------------------------------------------------------------------------------

@lru_cache(maxsize=16)
def chebyshev_points(n: int) -> NDArray:
    """
    n + 1 Chebyshev-Lobatto points -cos(pi j / n), ascending in [-1, 1].
    """
    t = -np.cos(np.pi * np.arange(n + 1) / n)
    t.setflags(write=False)
    return t

@lru_cache(maxsize=16)
def chebyshev_differentiation_matrix(n: int) -> NDArray:
    """
    First-order differentiation matrix at `chebyshev_points(n)`.

    Off-diagonal entries from the barycentric formula, diagonal from the
    negative sum trick (rows of D annihilate constants).
    """
    t       = chebyshev_points(n)
    c       = np.ones(n + 1)
    c[0]    = c[-1] = 2.0
    c      *= (-1.0) ** np.arange(n + 1)
    dt      = t[:, None] - t[None, :]
    D       = np.outer(c, 1.0 / c) / (dt + np.eye(n + 1))
    D      -= np.diag(np.sum(D, axis=1))
    D.setflags(write=False)
    return D

@lru_cache(maxsize=16)
def clenshaw_curtis_weights(n: int) -> NDArray:
    """
    Clenshaw-Curtis quadrature weights at `chebyshev_points(n)` on [-1, 1].
    """
    theta   = np.pi * np.arange(n + 1) / n
    w       = np.zeros(n + 1)
    ii      = np.arange(1, n)
    v       = np.ones(n - 1)
    if n % 2 == 0:
        w[0] = w[n] = 1.0 / (n ** 2 - 1)
        for k in range(1, n // 2):
            v -= 2.0 * np.cos(2 * k * theta[ii]) / (4 * k ** 2 - 1)
        v -= np.cos(n * theta[ii]) / (n ** 2 - 1)
    else:
        w[0] = w[n] = 1.0 / n ** 2
        for k in range(1, (n - 1) // 2 + 1):
            v -= 2.0 * np.cos(2 * k * theta[ii]) / (4 * k ** 2 - 1)
    w[ii] = 2.0 * v / n
    w.setflags(write=False)
    return w

def barycentric_interpolate(values: NDArray, nodes: NDArray, x: NDArray) -> NDArray:
    """
    Evaluate the polynomial interpolant of `values` at Chebyshev-Lobatto `nodes` in x.
    """
    n       = len(nodes) - 1
    w       = (-1.0) ** np.arange(n + 1)
    w[0]   *= 0.5
    w[-1]  *= 0.5
    x       = np.atleast_1d(np.asarray(x, dtype=float))
    diff    = x[:, None] - nodes[None, :]
    exact   = np.isclose(diff, 0.0, atol=1e-15, rtol=0.0)
    diff[exact] = 1.0
    kernel  = w[None, :] / diff
    out     = (kernel @ values) / np.sum(kernel, axis=1)
    rows, cols = np.nonzero(exact)
    out[rows] = values[cols]
    return out

# ----------------------------------------------------------------------------------------
#! Boundary conditions
# ----------------------------------------------------------------------------------------

class DirichletBC(NamedTuple):
    """
    Dirichlet data u(a) = left, u(b) = right.
    """
    left    : Scalar = 0.0
    right   : Scalar = 0.0

    @property
    def homogeneous(self) -> bool:
        return self.left == 0 and self.right == 0

    @staticmethod
    def parse(bc: Any) -> 'DirichletBC':
        """
        Accept a DirichletBC, a scalar (same value at both ends) or a (left, right) pair.

        Raises:
            InvalidInputError: for any other specification or non-finite values.
        """
        if isinstance(bc, DirichletBC):
            values = (bc.left, bc.right)
        elif np.isscalar(bc) and isinstance(bc, (int, float, complex, np.number)):
            values = (bc, bc)
        elif isinstance(bc, (tuple, list, np.ndarray)) and np.ndim(bc) == 1 and len(bc) == 2:
            values = tuple(bc)
        else:
            raise InvalidInputError(f"Malformed boundary conditions: {bc!r}, expected a scalar or a (left, right) pair",
                                    EigenErrorMsg.BC_INVALID)
        for val in values:
            if not isinstance(val, (int, float, complex, np.number)) or not np.isfinite(val):
                raise InvalidInputError(f"Boundary value {val!r} is not a finite number", EigenErrorMsg.BC_INVALID)
        return DirichletBC(values[0], values[1])

# ----------------------------------------------------------------------------------------
#! Differential operator
# ----------------------------------------------------------------------------------------

def _coefficient_values(coeff: Coefficient, x: NDArray, order: int) -> NDArray:
    if callable(coeff):
        vals = np.broadcast_to(np.asarray(coeff(x)), x.shape).copy()
    elif np.ndim(coeff) == 0 and isinstance(coeff, (int, float, complex, np.number)):
        vals = np.full(x.shape, coeff, dtype=np.result_type(coeff, float))
    else:
        raise InvalidInputError(f"Coefficient of order {order} must be a scalar or a callable of x, got {coeff!r}")
    if not np.issubdtype(vals.dtype, np.number) or not np.all(np.isfinite(vals)):
        raise InvalidInputError(f"Coefficient of order {order} is not finite on the domain")
    return vals

class DifferentialOperator(LinearOperator):
    """
    a2(x) u'' + a1(x) u' + a0(x) u on [a, b] with Dirichlet boundary conditions.

    Args:
        coeffs:
            (a0, a1, a2), lowest order first. Scalars or callables of x.
        domain:
            Interval (a, b) with a < b.
        bc:
            Dirichlet data, scalar or (left, right) or DirichletBC.
        n:
            Number of collocation intervals (n + 1 nodes).

    Example:
        >>> # -u'' on [-pi/2, pi/2], u = 0 at both ends; eigenvalues 1, 4, 9, ...
        >>> A = DifferentialOperator((0.0, 0.0, -1.0), domain=(-np.pi / 2, np.pi / 2), bc=0.0)
        >>> u = A.as_vector(lambda x: np.cos(x))
    """

    def __init__(self,
                coeffs  : Sequence[Coefficient],
                domain  : Tuple[float, float]       = (-1.0, 1.0),
                bc      : Any                       = 0.0,
                n       : int                       = DEFAULT_COLLOCATION_N,
                logger  : Optional['Logger']        = None,
                shift   : Scalar                    = 0.0):

        coeffs = tuple(coeffs)
        if len(coeffs) != 3:
            raise InvalidInputError(f"Expected coefficients (a0, a1, a2) of a second-order operator, got {len(coeffs)}")
        if len(domain) != 2 or not np.all(np.isfinite(domain)) or not float(domain[0]) < float(domain[1]):
            raise InvalidInputError(f"Domain must be a finite interval (a, b) with a < b, got {domain!r}")
        if int(n) != n or n < MIN_COLLOCATION_N:
            raise InvalidInputError(f"Collocation size n must be an integer >= {MIN_COLLOCATION_N}, got {n!r}")

        self._coeffs    = coeffs
        self._domain    = (float(domain[0]), float(domain[1]))
        self._bc        = DirichletBC.parse(bc)
        self._n         = int(n)

        a, b            = self._domain
        half            = 0.5 * (b - a)
        self._points    = 0.5 * (a + b) + half * chebyshev_points(self._n)
        self._weights   = half * clenshaw_curtis_weights(self._n)
        D               = chebyshev_differentiation_matrix(self._n) / half

        self._values    = tuple(_coefficient_values(c, self._points, k) for k, c in enumerate(coeffs))
        if np.all(self._values[2] == 0):
            raise InvalidInputError("Leading coefficient a2 vanishes identically, the operator is not second order")

        a0, a1, a2      = self._values
        L               = np.diag(a0) + a1[:, None] * D + a2[:, None] * (D @ D)
        L.setflags(write=False)
        self._L         = L

        super().__init__(self._n + 1, L.dtype, shift=shift, logger=logger)

    # -------------------------------------------------------------------------

    @property
    def coeffs(self) -> Tuple[Coefficient, ...]:
        return self._coeffs

    @property
    def domain(self) -> Tuple[float, float]:
        return self._domain

    @property
    def bc(self) -> DirichletBC:
        return self._bc

    @property
    def n(self) -> int:
        return self._n

    @property
    def points(self) -> NDArray:
        ''' Collocation nodes in [a, b], ascending. '''
        return self._points

    @property
    def weights(self) -> NDArray:
        return self._weights

    @property
    def matrix(self) -> NDArray:
        ''' Collocation matrix (without boundary rows). '''
        return self._L

    @property
    def is_self_adjoint(self) -> bool:
        a0, a1, a2 = self._values
        return (self._bc.homogeneous
                and bool(np.all(a1 == 0))
                and bool(np.all(np.imag(a0) == 0))
                and bool(np.all(np.imag(a2) == 0))
                and bool(np.all(a2 == a2[0])))

    # -------------------------------------------------------------------------

    def as_vector(self, x: Any) -> NDArray:
        ''' Accepts node values or a callable of x, sampled at the nodes. '''
        if callable(x):
            x = np.broadcast_to(np.asarray(x(self._points)), self._points.shape)
        return super().as_vector(x)

    def apply(self, x: NDArray) -> NDArray:
        return self._L @ self.as_vector(x)

    def shifted_by(self, lam: Scalar) -> 'DifferentialOperator':
        a0, a1, a2 = self._coeffs
        if callable(a0):
            new_a0 = lambda x, f=a0, s=lam: f(x) - s
        else:
            new_a0 = a0 - lam
        return DifferentialOperator((new_a0, a1, a2), self._domain, self._bc, self._n,
                                    logger=self._logger, shift=self._shift + lam)

    def solve(self, b: NDArray) -> NDArray:
        """
        Solve the collocation system with the boundary rows imposed:
        interior equations (A x)(x_i) = b_i and x(a) = left, x(b) = right.
        """
        b           = self.as_vector(b)
        dtype       = np.result_type(self._L, b, self._bc.left, self._bc.right)
        M           = self._L.astype(dtype, copy=True)
        M[0, :]     = 0.0
        M[-1, :]    = 0.0
        M[0, 0]     = 1.0
        M[-1, -1]   = 1.0
        rhs         = b.astype(dtype, copy=True)
        rhs[0]      = self._bc.left
        rhs[-1]     = self._bc.right
        return solve_dense(M, rhs, self._logger)

    def adjoint(self) -> 'DifferentialOperator':
        """
        Formal adjoint: (a0, a1, a2) -> (conj a0, -conj a1, conj a2), Dirichlet data stays homogeneous.

        Raises:
            InvalidInputError: for variable a1/a2 or inhomogeneous boundary data.
        """
        a0, a1, a2 = self._coeffs
        if not self._bc.homogeneous:
            raise InvalidInputError("The adjoint is defined for homogeneous Dirichlet conditions only",
                                    EigenErrorMsg.ADJOINT_NA)
        if callable(a1) or callable(a2):
            raise InvalidInputError("The adjoint rule requires constant a1 and a2 coefficients",
                                    EigenErrorMsg.ADJOINT_NA)
        if callable(a0):
            adj_a0 = lambda x, f=a0: np.conj(f(x))
        else:
            adj_a0 = np.conj(a0)
        return DifferentialOperator((adj_a0, -np.conj(a1), np.conj(a2)), self._domain, DirichletBC(0.0, 0.0), self._n,
                                    logger=self._logger, shift=np.conj(self._shift))

    def boundary_residual(self, x: NDArray) -> float:
        ''' Euclidean norm of [u(a) - left, u(b) - right]. '''
        x = self.as_vector(x)
        return float(np.hypot(abs(x[0] - self._bc.left), abs(x[-1] - self._bc.right)))

    # -------------------------------------------------------------------------

    def inner(self, x: NDArray, y: NDArray) -> complex:
        ''' L2 inner product on [a, b]. '''
        return complex(np.sum(self._weights * np.conj(x) * y))

    def norm(self, x: NDArray) -> float:
        return float(np.sqrt(max(self.inner(x, x).real, 0.0)))

    def evaluate(self, u: NDArray, x: NDArray) -> NDArray:
        ''' Evaluate the interpolant of node values u at points x in [a, b]. '''
        return barycentric_interpolate(self.as_vector(u), self._points, x)

    def __repr__(self):
        return (f"DifferentialOperator(domain={self._domain}, bc=({self._bc.left}, {self._bc.right}), "
                f"n={self._n}, shift={self._shift})")

# ------------------------------------------------------------------------------------------------
#! EOF
# ------------------------------------------------------------------------------------------------
