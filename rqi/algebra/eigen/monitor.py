"""
Residual bookkeeping for the Rayleigh quotient iteration.

The monitor stores the ordered residual history (initial guess first) and
evaluates the stopping predicate `last <= tol`. For operators with boundary
conditions the published residual is

    r = ||A u - lam u|| / ||A u|| + ||bc(u)||,

an additive blend of a normalized and an unnormalized quantity. Use
`relative_residual` directly for the normalized part alone.
"""

import numpy as np
from typing import Iterator, Optional
from numpy.typing import NDArray

from .result import InvalidInputError

# ----------------------------------------------------------------------------------------

def relative_residual(numerator: float, denominator: float) -> float:
    """
    numerator / denominator, with 0/0 -> 0 and x/0 -> inf.
    """
    if denominator == 0:
        return 0.0 if numerator == 0 else np.inf
    return float(numerator / denominator)

# ----------------------------------------------------------------------------------------

class ResidualMonitor:
    """
    Append-only residual history with the stopping predicate.

    Args:
        tol: convergence threshold on the last residual.

    Example:
        >>> mon = ResidualMonitor(tol=1e-10)
        >>> mon.append(1e-2); mon.append(1e-7); mon.append(1e-21)
        >>> mon.converged()
        True
    """

    def __init__(self, tol: float = 1e-10):
        if not np.isfinite(tol) or tol < 0:
            raise InvalidInputError(f"Tolerance must be a finite non-negative number, got {tol!r}")
        self._tol       = float(tol)
        self._history   = []

    # ------------------------------------------------------------------------------------

    @staticmethod
    def combine(operator_residual: float, boundary_residual: float = 0.0) -> float:
        ''' Published residual: plain sum of the operator and boundary-condition parts. '''
        return float(operator_residual) + float(boundary_residual)

    def append(self, residual: float) -> float:
        """
        Append one residual. Negative or NaN values are rejected, +inf is kept
        (a zero ||A u|| with a nonzero numerator).
        """
        residual = float(residual)
        if np.isnan(residual) or residual < 0:
            raise InvalidInputError(f"Residual must be non-negative, got {residual!r}")
        self._history.append(residual)
        return residual

    # ------------------------------------------------------------------------------------

    @property
    def tol(self) -> float:
        return self._tol

    @property
    def history(self) -> NDArray:
        ''' Copy of the residual history. '''
        return np.array(self._history, dtype=float)

    @property
    def last(self) -> Optional[float]:
        return self._history[-1] if self._history else None

    def converged(self) -> bool:
        ''' last(history) <= tol; False for an empty history. '''
        return bool(self._history) and self._history[-1] <= self._tol

    def __len__(self) -> int:
        return len(self._history)

    def __iter__(self) -> Iterator[float]:
        return iter(list(self._history))

    # ------------------------------------------------------------------------------------

    def estimated_orders(self, floor: float = 1e-14) -> NDArray:
        """
        Estimated local convergence orders

            q_k = log(r[k+1] / r[k]) / log(r[k] / r[k-1]),

        about 2 for quadratic and 3 for cubic decay. Triples touching the
        rounding floor (any residual <= floor) or without decrease give NaN.
        """
        r   = self.history
        out = np.full(max(len(r) - 2, 0), np.nan)
        for k in range(1, len(r) - 1):
            prev, cur, nxt = r[k - 1], r[k], r[k + 1]
            if min(prev, cur, nxt) <= floor or not (nxt < cur < prev):
                continue
            out[k - 1] = np.log(nxt / cur) / np.log(cur / prev)
        return out

    def __repr__(self):
        last = f"{self.last:.3e}" if self._history else "None"
        return f"ResidualMonitor(tol={self._tol:.1e}, entries={len(self)}, last={last})"

# ------------------------------------------------------------------------------------------------
#! EOF
# ------------------------------------------------------------------------------------------------
