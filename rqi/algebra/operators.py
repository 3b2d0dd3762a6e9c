'''
file:       rqi/algebra/operators.py

Defines the abstract operator interface used by the Rayleigh quotient iteration

$$
A x = \\lambda x,
$$

together with the dense/sparse matrix backend. Any backend provides

    - apply(x)          : A x
    - shifted_by(lam)   : the new operator A - lam I (the original is never mutated)
    - solve(b)          : x with (this operator) x = b
    - adjoint()         : conjugate transpose / formal adjoint
    - boundary_residual : violation of the boundary conditions (0 for matrices)

plus the geometry (inner product and norm) in which eigenvectors are normalized.

Shifted systems become numerically singular as the shift approaches an
eigenvalue. The solve helpers solve them directly, fall back to a regularized
and then a minimum-norm solve when the direct solve fails outright, and raise
`SingularSystemError` only when no usable vector comes out.
'''

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla
from scipy import linalg as scipy_linalg
from abc import ABC, abstractmethod
from typing import Optional, Union, Any, TypeAlias, TYPE_CHECKING

from .eigen.result import InvalidInputError, SingularSystemError, EigenErrorMsg

if TYPE_CHECKING:
    from ..common.flog import Logger

# -----------------------------------------------------------------------------
#! Type hints
# -----------------------------------------------------------------------------

Array   : TypeAlias = np.ndarray
Scalar  : TypeAlias = Union[float, complex]

# relative size of the diagonal perturbation used when a shifted solve fails
REGULARIZATION_EPS = 1e3 * np.finfo(float).eps

# -----------------------------------------------------------------------------
#! Solve helpers
# -----------------------------------------------------------------------------

def _usable(x: Optional[Array]) -> bool:
    return x is not None and bool(np.all(np.isfinite(x))) and bool(np.any(x != 0))

def _warn(logger: Optional['Logger'], msg: str):
    if logger is None:
        from ..common.flog import get_global_logger
        logger = get_global_logger()
    logger.warning(msg, lvl=2)

def solve_dense(a: Array, b: Array, logger: Optional['Logger'] = None) -> Array:
    """
    Solve the dense system a x = b.

    Near-singular systems are solved directly with LAPACK gesv, which reports
    only exact singularity and emits no warnings; the global warning filters
    are never touched, so concurrent solves are safe. If the system is exactly
    singular or the solution is not finite, retry with a + delta I,
    delta = REGULARIZATION_EPS * ||a||_1, and finally with the minimum-norm
    least-squares solution.

    Raises:
        SingularSystemError: if none of the attempts returns a finite nonzero vector.
    """
    try:
        x = np.linalg.solve(a, b)
    except np.linalg.LinAlgError:
        x = None
    if _usable(x):
        return x

    n       = a.shape[0]
    delta   = REGULARIZATION_EPS * max(np.linalg.norm(a, 1), 1.0)
    _warn(logger, f"Singular shifted system (n={n}), retrying with diagonal regularization {delta:.2e}")
    try:
        x = np.linalg.solve(a + delta * np.eye(n, dtype=a.dtype), b)
    except np.linalg.LinAlgError:
        x = None
    if _usable(x):
        return x

    _warn(logger, "Regularized solve failed, using the minimum-norm least-squares solution")
    try:
        x = scipy_linalg.lstsq(a, b)[0]
    except (scipy_linalg.LinAlgError, ValueError) as e:
        raise SingularSystemError(f"Least-squares fallback failed: {e}") from e
    if not _usable(x):
        raise SingularSystemError("Shifted system is singular and cannot be regularized.")
    return x

def solve_sparse(a: sp.spmatrix, b: Array, logger: Optional['Logger'] = None) -> Array:
    """
    Sparse counterpart of `solve_dense`: SuperLU, regularized SuperLU, lsqr.
    """
    dtype = np.result_type(a.dtype, b.dtype)

    def _splu_solve(mat):
        try:
            lu = spla.splu(mat.astype(dtype).tocsc())
        except RuntimeError:
            # exactly singular factor
            return None
        return np.asarray(lu.solve(np.asarray(b, dtype=dtype))).ravel()

    x = _splu_solve(a)
    if _usable(x):
        return x

    n       = a.shape[0]
    delta   = REGULARIZATION_EPS * max(spla.norm(a, 1), 1.0)
    _warn(logger, f"Singular sparse shifted system (n={n}), retrying with diagonal regularization {delta:.2e}")
    x       = _splu_solve(a + delta * sp.identity(n, format='csc', dtype=dtype))
    if _usable(x):
        return x

    _warn(logger, "Regularized sparse solve failed, using lsqr minimum-norm solution")
    x = spla.lsqr(a, b)[0]
    if not _usable(x):
        raise SingularSystemError("Shifted sparse system is singular and cannot be regularized.")
    return x

# -----------------------------------------------------------------------------
#! Linear operator interface
# -----------------------------------------------------------------------------

class LinearOperator(ABC):
    '''
    Abstract base class for the operators the Rayleigh quotient iteration acts on.

    Operators are immutable values: `shifted_by` and `adjoint` return new
    operators. Vectors are 1D arrays of length `size`.
    '''

    def __init__(self, size: int, dtype: Any, shift: Scalar = 0.0, logger: Optional['Logger'] = None):
        self._size      = int(size)
        self._dtype     = np.dtype(dtype)
        self._shift     = shift
        self._logger    = logger

    # -------------------------------------------------------------------------

    @property
    def size(self) -> int:
        ''' Dimension of the vectors the operator acts on. '''
        return self._size

    @property
    def dtype(self):
        return self._dtype

    @property
    def shift(self) -> Scalar:
        ''' Total shift lam applied through `shifted_by` (A - lam I). '''
        return self._shift

    @property
    @abstractmethod
    def is_self_adjoint(self) -> bool:
        ''' Whether the operator equals its adjoint. '''

    # -------------------------------------------------------------------------
    #! Capabilities
    # -------------------------------------------------------------------------

    @abstractmethod
    def apply(self, x: Array) -> Array:
        ''' Compute A x. '''

    @abstractmethod
    def shifted_by(self, lam: Scalar) -> 'LinearOperator':
        ''' Return A - lam I as a new operator. '''

    @abstractmethod
    def solve(self, b: Array) -> Array:
        ''' Solve (this operator) x = b. '''

    @abstractmethod
    def adjoint(self) -> 'LinearOperator':
        ''' Return the adjoint operator. '''

    def boundary_residual(self, x: Array) -> float:
        ''' Violation of the boundary conditions by x, zero without boundary conditions. '''
        return 0.0

    # -------------------------------------------------------------------------
    #! Geometry
    # -------------------------------------------------------------------------

    def inner(self, x: Array, y: Array) -> complex:
        ''' Inner product x* y. '''
        return complex(np.vdot(x, y))

    def norm(self, x: Array) -> float:
        return float(np.linalg.norm(x))

    def as_vector(self, x: Any) -> Array:
        '''
        Validate and convert x to a 1D array of length `size`.
        Column vectors (size, 1) are accepted.

        Raises:
            InvalidInputError: if x does not have a matching number of elements.
        '''
        arr = np.asarray(x)
        if arr.ndim == 2 and 1 in arr.shape:
            arr = arr.ravel()
        if arr.shape != (self._size,):
            raise InvalidInputError(f"Vector has shape {np.shape(x)}, expected ({self._size},)",
                                    EigenErrorMsg.DIM_MISMATCH)
        if not (np.issubdtype(arr.dtype, np.number) or arr.dtype == np.bool_):
            raise InvalidInputError(f"Vector has non-numeric dtype {arr.dtype}")
        if not np.all(np.isfinite(arr)):
            raise InvalidInputError("Vector contains non-finite entries")
        return arr

    def __matmul__(self, x: Array) -> Array:
        return self.apply(x)

    def __repr__(self):
        return f"{self.__class__.__name__}(size={self._size}, dtype={self._dtype}, shift={self._shift})"

def solve(op: LinearOperator, b: Array) -> Array:
    '''
    Solve op x = b for x. Functional form of `LinearOperator.solve`.
    '''
    return op.solve(b)

# -----------------------------------------------------------------------------
#! Matrix backend
# -----------------------------------------------------------------------------

def is_hermitian(a, tol: float = 1e-12) -> bool:
    """
    Check if a is symmetric/Hermitian, works for dense and sparse.

    The asymmetry |a_ij - conj(a_ji)| is compared against tol times the largest
    entry magnitude (at least 1), with no per-entry relative slack.
    """
    if sp.issparse(a):
        diff    = (a - a.conj().T).tocoo()
        if diff.nnz == 0:
            return True
        scale   = max(float(abs(a).max()), 1.0)
        return bool(np.all(np.abs(diff.data) <= tol * scale))
    a       = np.asarray(a)
    scale   = max(float(np.max(np.abs(a))), 1.0) if a.size else 1.0
    return bool(np.allclose(a, a.conj().T, rtol=0.0, atol=tol * scale))

class MatrixOperator(LinearOperator):
    """
    Finite-dimensional operator backed by a square dense array or scipy sparse matrix.

    Args:
        a:
            Square coefficient array (numpy array or scipy.sparse matrix). It is copied.
        hermitian:
            Symmetry flag. None means detect it from the entries.
        logger:
            Logger used for fallback-solve warnings.

    Example:
        >>> A = MatrixOperator(np.array([[2.0, 1.0], [1.0, 3.0]]))
        >>> B = A.shifted_by(2.0)   # A - 2 I, A itself is unchanged
        >>> x = B.solve(np.ones(2))
    """

    def __init__(self, a, hermitian: Optional[bool] = None, logger: Optional['Logger'] = None, shift: Scalar = 0.0):
        if sp.issparse(a):
            mat = a.tocsr(copy=True)
        else:
            mat = np.array(a, copy=True)
            if not np.issubdtype(mat.dtype, np.number):
                raise InvalidInputError(f"Matrix has non-numeric dtype {mat.dtype}")

        if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
            raise InvalidInputError(f"Matrix must be square, got shape {mat.shape}", EigenErrorMsg.NOT_SQUARE)
        if mat.shape[0] == 0:
            raise InvalidInputError("Matrix must not be empty", EigenErrorMsg.NOT_SQUARE)

        values = mat.data if sp.issparse(mat) else mat
        if not np.all(np.isfinite(values)):
            raise InvalidInputError("Matrix contains non-finite entries")

        if not sp.issparse(mat):
            mat.setflags(write=False)

        super().__init__(mat.shape[0], mat.dtype, shift=shift, logger=logger)
        self._mat       = mat
        self._sparse    = sp.issparse(mat)
        self._hermitian = is_hermitian(mat) if hermitian is None else bool(hermitian)

    # -------------------------------------------------------------------------

    @property
    def matrix(self):
        ''' The (read-only) coefficient array. '''
        return self._mat

    @property
    def is_sparse(self) -> bool:
        return self._sparse

    @property
    def is_self_adjoint(self) -> bool:
        return self._hermitian

    # -------------------------------------------------------------------------

    def apply(self, x: Array) -> Array:
        return np.asarray(self._mat @ self.as_vector(x)).ravel()

    def shifted_by(self, lam: Scalar) -> 'MatrixOperator':
        dtype = np.result_type(self._mat.dtype, np.asarray(lam).dtype)
        if self._sparse:
            shifted = self._mat.astype(dtype) - lam * sp.identity(self._size, format='csr', dtype=dtype)
        else:
            shifted = self._mat.astype(dtype) - lam * np.eye(self._size, dtype=dtype)
        return MatrixOperator(shifted,
                            hermitian   = self._hermitian and np.imag(lam) == 0,
                            logger      = self._logger,
                            shift       = self._shift + lam)

    def solve(self, b: Array) -> Array:
        b = self.as_vector(b)
        if self._sparse:
            return solve_sparse(self._mat, b, self._logger)
        return solve_dense(self._mat, b, self._logger)

    def adjoint(self) -> 'MatrixOperator':
        return MatrixOperator(self._mat.conj().T,
                            hermitian   = self._hermitian,
                            logger      = self._logger,
                            shift       = np.conj(self._shift))

def as_operator(a, logger: Optional['Logger'] = None) -> LinearOperator:
    '''
    Return `a` if it already is a LinearOperator, otherwise wrap a square
    dense/sparse array in a MatrixOperator.
    '''
    if isinstance(a, LinearOperator):
        return a
    return MatrixOperator(a, logger=logger)

# ------------------------------------------------------------------------------------------------
#! EOF
# ------------------------------------------------------------------------------------------------
