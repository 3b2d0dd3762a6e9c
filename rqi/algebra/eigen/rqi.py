r"""
Rayleigh Quotient Iteration

Refines a single eigenpair of an operator A (matrix or discretized differential
operator) from an approximate eigenvalue and eigenvector.

One-sided iteration (u unit norm):
    1. Solve
        $$
        (A - \lambda I) u' = u
        $$
    2. Normalize u = u' / ||u'||
    3. Rayleigh quotient
        $$
        \lambda = u^* A u
        $$
    4. Residual r = ||A u - lambda u|| / ||A u|| (+ boundary-condition residual)

The local convergence is cubic for self-adjoint A and quadratic otherwise.

Two-sided iteration additionally carries a left vector v driven by the adjoint,
    $$
    v' = (A - \lambda I)^{-*} v,\qquad
    \lambda = \frac{v^* A u}{v^* u},
    $$
which restores cubic convergence for non-self-adjoint A. For self-adjoint A,
real lambda and v0 = u0 it reproduces the one-sided iterates.

References:
    - B. N. Parlett, "The Symmetric Eigenvalue Problem", SIAM 1998, Sec. 4.6
    - B. N. Parlett, "The Rayleigh quotient iteration and some generalizations
      for nonnormal matrices", Math. Comp. 28 (1974)
"""

import contextlib
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Callable, Any, Tuple, TYPE_CHECKING
from numpy.typing import NDArray

from ..operators import LinearOperator, as_operator, Scalar
from .monitor import ResidualMonitor, relative_residual
from .result import (
    RQIResult, RQIStatus, EigenErrorMsg,
    InvalidInputError, SingularSystemError, ConvergenceFailureError,
)

if TYPE_CHECKING:
    from ...common.flog import Logger

# ----------------------------------------------------------------------------------------
#! Defaults
# ----------------------------------------------------------------------------------------

DEFAULT_TOL         = 1e-10
DEFAULT_MAXITER     = 50
DEFAULT_ORTH_TOL    = 1e-12

# callback(iteration, eigenvalue, residual) -> True to stop
IterationCallback   = Callable[[int, Scalar, float], bool]

# ----------------------------------------------------------------------------------------

def _tidy(q: complex, real: bool) -> Scalar:
    ''' Drop the imaginary part for self-adjoint operators or when it is exactly zero. '''
    if real or q.imag == 0:
        return float(q.real)
    return q

def residual(A: LinearOperator, lam: Scalar, u: NDArray) -> float:
    """
    Published residual ||A u - lam u|| / ||A u|| + boundary_residual(u).
    """
    Au = A.apply(u)
    return ResidualMonitor.combine(relative_residual(A.norm(Au - lam * u), A.norm(Au)),
                                A.boundary_residual(u))

# ----------------------------------------------------------------------------------------
#! One-sided iteration
# ----------------------------------------------------------------------------------------

class RayleighQuotientIteration:
    """
    One-sided Rayleigh quotient iteration for a single eigenpair.

    Args:
        tol:
            Convergence threshold on the residual (default 1e-10).
        maxiter:
            Maximum number of iterations (default 50).
        callback:
            Optional callback(iteration, eigenvalue, residual), called after each
            iteration that did not converge. Returning True stops the run
            (status STOPPED), e.g. for a deadline check.
        raise_on_failure:
            Raise SingularSystemError / ConvergenceFailureError (carrying the
            result) instead of returning a non-converged result.
        logger:
            Logger, defaults to the global one.
        verbose:
            Log progress messages.

    Example:
        >>> A       = np.diag([1.0, 2.0, 5.0])
        >>> solver  = RayleighQuotientIteration(tol=1e-12)
        >>> res     = solver.solve(A, lam0=1.8, u0=np.ones(3))
        >>> res.eigenvalue, res.converged
        (2.0, True)
    """

    _two_sided  = False
    _name       = 'RQI'

    def __init__(self,
                tol                 : float                         = DEFAULT_TOL,
                maxiter             : int                           = DEFAULT_MAXITER,
                *,
                callback            : Optional[IterationCallback]   = None,
                raise_on_failure    : bool                          = False,
                logger              : Optional['Logger']            = None,
                verbose             : bool                          = True):
        self.tol, self.maxiter  = self._check_config(tol, maxiter)
        self.callback           = callback
        self.raise_on_failure   = raise_on_failure
        self.verbose            = verbose
        if logger is None:
            from ...common.flog import get_global_logger
            logger = get_global_logger()
        self._logger            = logger

    # ------------------------------------------------------------------------------------

    @staticmethod
    def _check_config(tol: float, maxiter: int) -> Tuple[float, int]:
        if isinstance(tol, bool) or not isinstance(tol, (int, float, np.integer, np.floating)) \
                or not np.isfinite(tol) or tol < 0:
            raise InvalidInputError(f"tol must be a finite non-negative number, got {tol!r}")
        if isinstance(maxiter, bool) or not isinstance(maxiter, (int, np.integer)) or maxiter < 0:
            raise InvalidInputError(f"maxiter must be a non-negative integer, got {maxiter!r}")
        return float(tol), int(maxiter)

    @staticmethod
    def _check_shift(lam0: Any) -> Scalar:
        if np.ndim(lam0) != 0 or not isinstance(np.asarray(lam0).item(), (int, float, complex)):
            raise InvalidInputError(f"Initial eigenvalue guess must be a scalar, got {lam0!r}")
        lam = np.asarray(lam0).item()
        if isinstance(lam, bool) or not np.isfinite(lam):
            raise InvalidInputError(f"Initial eigenvalue guess must be a finite number, got {lam0!r}")
        return _tidy(complex(lam), False)

    @staticmethod
    def _normalize_guess(A: LinearOperator, x0: Any, name: str) -> NDArray:
        x   = A.as_vector(x0)
        nrm = A.norm(x)
        if not nrm > 0:
            raise InvalidInputError(f"Initial vector {name} has zero norm", EigenErrorMsg.ZERO_VECTOR)
        return x / nrm

    @staticmethod
    def _normalize(A: LinearOperator, x: NDArray) -> NDArray:
        nrm = A.norm(x)
        if not np.isfinite(nrm) or nrm == 0:
            raise SingularSystemError(f"Shift-and-invert step returned a vector of norm {nrm}")
        return x / nrm

    # ------------------------------------------------------------------------------------
    #! Steps
    # ------------------------------------------------------------------------------------

    def _quotient(self, A: LinearOperator, u: NDArray, v: Optional[NDArray]) -> Scalar:
        ''' Rayleigh quotient u* A u of the unit vector u. '''
        return _tidy(A.inner(u, A.apply(u)), A.is_self_adjoint)

    def _step(self, A: LinearOperator, lam: Scalar, u: NDArray, v: Optional[NDArray], pool) -> Tuple[NDArray, Optional[NDArray], Scalar]:
        shifted = A.shifted_by(lam)
        u       = self._normalize(A, shifted.solve(u))
        return u, None, self._quotient(A, u, None)

    def _executor(self):
        return contextlib.nullcontext()

    def _prepare(self, A: LinearOperator, u: NDArray, v0: Any) -> Optional[NDArray]:
        return None

    # ------------------------------------------------------------------------------------
    #! Driver
    # ------------------------------------------------------------------------------------

    def solve(self,
            A           : Any,
            lam0        : Optional[Scalar],
            u0          : Any,
            *,
            tol         : Optional[float]   = None,
            maxiter     : Optional[int]     = None) -> RQIResult:
        """
        Run the iteration.

        Args:
            A:
                LinearOperator, or a square dense/sparse array (wrapped in MatrixOperator).
            lam0:
                Initial eigenvalue guess. None uses the Rayleigh quotient of u0.
            u0:
                Nonzero initial vector (normalized internally).
            tol, maxiter:
                Per-call overrides of the configured values.

        Returns:
            RQIResult with the final pair and the full residual history.

        Raises:
            InvalidInputError:
                Before any iteration, for invalid operator, guesses or configuration.
            SingularSystemError, ConvergenceFailureError:
                Only with raise_on_failure=True.
        """
        return self._run(A, lam0, u0, None, tol, maxiter)

    def _run(self, A, lam0, u0, v0, tol, maxiter) -> RQIResult:
        tol, maxiter    = self._check_config(self.tol if tol is None else tol,
                                            self.maxiter if maxiter is None else maxiter)
        A               = as_operator(A, self._logger)
        u               = self._normalize_guess(A, u0, 'u0')
        v               = self._prepare(A, u, v0)

        if lam0 is None:
            try:
                lam = self._quotient(A, u, v)
            except SingularSystemError as e:
                raise InvalidInputError(f"Cannot form the initial quotient, provide lam0: {e.message}") from e
        else:
            lam = self._check_shift(lam0)

        monitor         = ResidualMonitor(tol)
        monitor.append(residual(A, lam, u))
        self._logger.info(f"{self._name}: n={A.size}, lam0={lam}, tol={tol:.1e}, maxiter={maxiter}, "
                        f"self-adjoint={A.is_self_adjoint}", lvl=1, verbose=self.verbose)
        self._logger.debug(f"it=0 lam={lam} res={monitor.last:.3e}", lvl=2, verbose=self.verbose)

        iteration       = 0
        status          = RQIStatus.MAX_ITER
        message         = ''
        error_code      = EigenErrorMsg.MAT_SINGULAR

        if monitor.converged():
            # initial guess already accurate, report its quotient
            status      = RQIStatus.CONVERGED
            try:
                lam     = self._quotient(A, u, v)
            except SingularSystemError as e:
                status, message, error_code = RQIStatus.SINGULAR, e.message, e.code

        with self._executor() as pool:
            while status is RQIStatus.MAX_ITER and iteration < maxiter:
                try:
                    u_new, v_new, lam_new = self._step(A, lam, u, v, pool)
                except SingularSystemError as e:
                    status, message, error_code = RQIStatus.SINGULAR, e.message, e.code
                    break

                iteration  += 1
                u, v, lam   = u_new, v_new, lam_new
                res         = monitor.append(residual(A, lam, u))
                self._logger.debug(f"it={iteration} lam={lam} res={res:.3e}", lvl=2, verbose=self.verbose)

                if monitor.converged():
                    status = RQIStatus.CONVERGED
                elif self.callback is not None and self.callback(iteration, lam, res):
                    status, message = RQIStatus.STOPPED, f"Stopped by callback after {iteration} iterations"

        if status is RQIStatus.MAX_ITER:
            message = f"Residual {monitor.last:.3e} above tol={tol:.1e} after {iteration} iterations"

        result = RQIResult(
            eigenvalue          = lam,
            eigenvector         = u,
            left_eigenvector    = v,
            residuals           = monitor.history,
            iterations          = iteration,
            converged           = status is RQIStatus.CONVERGED,
            status              = status,
            message             = message,
        )

        if result.converged:
            self._logger.info(f"{self._name} converged: lam={lam}, iterations={iteration}, res={monitor.last:.3e}",
                            lvl=1, verbose=self.verbose, color='green')
            return result

        self._logger.warning(f"{self._name} {status.name}: {message}", lvl=1, verbose=self.verbose)
        if self.raise_on_failure:
            if status is RQIStatus.SINGULAR:
                raise SingularSystemError(message, error_code, result=result)
            if status is RQIStatus.MAX_ITER:
                raise ConvergenceFailureError(message, result=result)
        return result

# ----------------------------------------------------------------------------------------
#! Two-sided iteration
# ----------------------------------------------------------------------------------------

class TwoSidedRayleighQuotientIteration(RayleighQuotientIteration):
    """
    Two-sided Rayleigh quotient iteration (right vector u, left vector v).

    Args:
        orth_tol:
            Threshold on |v* u| (both unit norm) below which the generalized
            quotient is treated as a singular system (default 1e-12).
        parallel:
            Run the two independent solves of each step on two threads.
        **kwargs:
            As for RayleighQuotientIteration.

    Example:
        >>> solver  = TwoSidedRayleighQuotientIteration(tol=1e-12)
        >>> res     = solver.solve(A, lam0=A[-1, -1], u0=u0, v0=v0)
        >>> res.left_eigenvector    # approximates a left eigenvector
    """

    _two_sided  = True
    _name       = 'Two-sided RQI'

    def __init__(self,
                tol         : float = DEFAULT_TOL,
                maxiter     : int   = DEFAULT_MAXITER,
                *,
                orth_tol    : float = DEFAULT_ORTH_TOL,
                parallel    : bool  = False,
                **kwargs):
        super().__init__(tol, maxiter, **kwargs)
        if not np.isfinite(orth_tol) or orth_tol < 0:
            raise InvalidInputError(f"orth_tol must be a finite non-negative number, got {orth_tol!r}")
        self.orth_tol = float(orth_tol)
        self.parallel = bool(parallel)

    # ------------------------------------------------------------------------------------

    def _prepare(self, A: LinearOperator, u: NDArray, v0: Any) -> NDArray:
        # surfaces an undefined adjoint before the first iteration
        A.adjoint()
        if v0 is None:
            return u.copy()
        return self._normalize_guess(A, v0, 'v0')

    def _executor(self):
        if self.parallel:
            return ThreadPoolExecutor(max_workers=2, thread_name_prefix='rqi')
        return contextlib.nullcontext()

    def _quotient(self, A: LinearOperator, u: NDArray, v: Optional[NDArray]) -> Scalar:
        ''' Generalized Rayleigh quotient (v* A u) / (v* u). '''
        denom = A.inner(v, u)
        if abs(denom) < self.orth_tol:
            raise SingularSystemError(f"|v* u| = {abs(denom):.2e} below {self.orth_tol:.1e}, "
                                    "left and right estimates are nearly orthogonal",
                                    EigenErrorMsg.DENOM_COLLAPSE)
        return _tidy(A.inner(v, A.apply(u)) / denom, A.is_self_adjoint)

    def _step(self, A: LinearOperator, lam: Scalar, u: NDArray, v: NDArray, pool) -> Tuple[NDArray, NDArray, Scalar]:
        shifted = A.shifted_by(lam)
        adj     = shifted.adjoint()
        if pool is not None:
            fu, fv  = pool.submit(shifted.solve, u), pool.submit(adj.solve, v)
            u_raw   = fu.result()
            v_raw   = fv.result()
        else:
            u_raw   = shifted.solve(u)
            v_raw   = adj.solve(v)
        u = self._normalize(A, u_raw)
        v = self._normalize(A, v_raw)
        return u, v, self._quotient(A, u, v)

    def solve(self,
            A           : Any,
            lam0        : Optional[Scalar],
            u0          : Any,
            v0          : Any               = None,
            *,
            tol         : Optional[float]   = None,
            maxiter     : Optional[int]     = None) -> RQIResult:
        """
        Run the two-sided iteration. v0 defaults to a copy of u0.

        Raises:
            InvalidInputError:
                Also when the adjoint of A is not available.
        """
        return self._run(A, lam0, u0, v0, tol, maxiter)

# ----------------------------------------------------------------------------------------
#! Functional interface
# ----------------------------------------------------------------------------------------

def rayleigh_quotient_iteration(A           : Any,
                                lam0        : Optional[Scalar],
                                u0          : Any,
                                v0          : Any   = None,
                                *,
                                two_sided   : bool  = False,
                                tol         : float = DEFAULT_TOL,
                                maxiter     : int   = DEFAULT_MAXITER,
                                **kwargs) -> RQIResult:
    """
    Refine one eigenpair of A starting from (lam0, u0).

    Args:
        A:
            LinearOperator or square array.
        lam0:
            Initial eigenvalue guess (None: Rayleigh quotient of u0).
        u0:
            Initial right vector.
        v0:
            Initial left vector, two-sided mode only (default: u0).
        two_sided:
            Select the two-sided iteration.
        tol, maxiter:
            Stopping configuration.
        **kwargs:
            Further engine options (callback, raise_on_failure, logger, verbose,
            and orth_tol/parallel in two-sided mode).

    Example:
        >>> res = rayleigh_quotient_iteration(A, A[-1, -1], u0, two_sided=True)
    """
    if two_sided:
        return TwoSidedRayleighQuotientIteration(tol, maxiter, **kwargs).solve(A, lam0, u0, v0)
    if v0 is not None:
        raise InvalidInputError("v0 is only used by the two-sided iteration, pass two_sided=True")
    return RayleighQuotientIteration(tol, maxiter, **kwargs).solve(A, lam0, u0)

# ------------------------------------------------------------------------------------------------
#! EOF
# ------------------------------------------------------------------------------------------------
