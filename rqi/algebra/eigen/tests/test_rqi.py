"""
Test suite for the Rayleigh quotient iteration on matrices.

Covers the one-sided and two-sided engines, compares with full
diagonalization, checks the local convergence orders and the failure paths.
"""

import warnings
import numpy as np
import scipy.sparse as sp
import pytest

from rqi.algebra.eigen import (
    RayleighQuotientIteration, TwoSidedRayleighQuotientIteration, rayleigh_quotient_iteration,
    RQIStatus, EigenErrorMsg, InvalidInputError, SingularSystemError, ConvergenceFailureError,
)
from rqi.algebra.guesses import random_matrix, random_unit_vector

# ----------------------------------
#! Helper functions to create test matrices
# ----------------------------------

def create_symmetric_matrix(n, seed=42):
    """Symmetric matrix with spectrum 1, 2, ..., n."""
    rng     = np.random.default_rng(seed)
    Q, _    = np.linalg.qr(rng.standard_normal((n, n)))
    A       = Q @ np.diag(np.arange(1.0, n + 1)) @ Q.T
    return 0.5 * (A + A.T)

def create_nonsymmetric_matrix(n, seed=42, spread=0.1):
    """Well-conditioned nonsymmetric matrix S diag(1..n) S^-1, returns (A, right, left) eigenvectors."""
    rng     = np.random.default_rng(seed)
    S       = np.eye(n) + spread * rng.standard_normal((n, n))
    A       = S @ np.diag(np.arange(1.0, n + 1)) @ np.linalg.inv(S)
    left    = np.linalg.inv(S).conj().T
    return A, S, left

def perturbed(x, eps, seed=0):
    """Unit vector x + eps * (random unit vector)."""
    x   = x / np.linalg.norm(x)
    y   = x + eps * random_unit_vector(len(x), rng=seed, uniform=False)
    return y / np.linalg.norm(y)

def nearest_eigenpair(A, target):
    evals, evecs = np.linalg.eigh(A)
    k = np.argmin(np.abs(evals - target))
    return evals[k], evecs[:, k]

def true_residual(A, lam, u):
    Au = A @ u
    return np.linalg.norm(Au - lam * u) / np.linalg.norm(Au)

def order_pairs(residuals, upper=1e-2, lower=1e-13):
    """Consecutive residual pairs inside the asymptotic window and above the rounding floor."""
    r = np.asarray(residuals)
    return [(r[k], r[k + 1]) for k in range(len(r) - 1) if r[k] < upper and r[k + 1] > lower]

# ----------------------------------
#! Test classes
# ----------------------------------

class TestOneSidedBasic:
    """Basic functionality of the one-sided iteration."""

    def test_symmetric_scenario(self):
        """10 x 10 symmetric matrix, lam0 = A[-1, -1], fixed unit guess."""
        n       = 10
        A       = random_matrix(n, rng=10, symmetric=True)
        lam0    = A[-1, -1]
        _, x    = nearest_eigenpair(A, lam0)
        u0      = perturbed(x, 5e-2)

        result  = RayleighQuotientIteration(tol=1e-10, maxiter=50).solve(A, lam0, u0)

        print(f"\nSymmetric: lam={result.eigenvalue}, iterations={result.iterations}")
        print(f"  residuals: {result.residuals}")
        assert result.converged
        assert result.status is RQIStatus.CONVERGED
        assert result.iterations <= 6
        assert result.residuals[-1] < 1e-10
        assert np.isclose(np.linalg.norm(result.eigenvector), 1.0)
        assert np.min(np.abs(np.linalg.eigvalsh(A) - result.eigenvalue)) < 1e-8
        assert true_residual(A, result.eigenvalue, result.eigenvector) < 1e-9

    def test_random_guess_converges(self):
        """Uniform random guess: some eigenpair of A is reached."""
        n       = 10
        A       = random_matrix(n, rng=3, symmetric=True)
        u0      = random_unit_vector(n, rng=4)
        result  = rayleigh_quotient_iteration(A, A[-1, -1], u0, maxiter=50)

        assert result.converged
        assert result.history_length == result.iterations + 1
        assert np.min(np.abs(np.linalg.eigvalsh(A) - result.eigenvalue)) < 1e-8

    def test_eigenvalue_real_for_hermitian(self):
        """Complex Hermitian operator: the quotient is returned as a real number."""
        n       = 8
        rng     = np.random.default_rng(5)
        B       = rng.standard_normal((n, n)) + 1j * rng.standard_normal((n, n))
        A       = B + B.conj().T
        evals, evecs = np.linalg.eigh(A)
        u0      = evecs[:, 3] + 1e-2 * random_unit_vector(n, rng=6, complex_valued=True)
        result  = RayleighQuotientIteration().solve(A, evals[3] + 0.01, u0)

        assert result.converged
        assert isinstance(result.eigenvalue, float)
        assert abs(result.eigenvalue - evals[3]) < 1e-8

    def test_sparse_matrix(self):
        """Sparse 1D Laplacian, eigenvalues 2 - 2 cos(k pi / (n + 1))."""
        n       = 50
        A       = sp.diags([-np.ones(n - 1), 2.0 * np.ones(n), -np.ones(n - 1)], [-1, 0, 1], format='csr')
        k       = 3
        exact   = 2.0 - 2.0 * np.cos(k * np.pi / (n + 1))
        x       = np.sin(k * np.pi * np.arange(1, n + 1) / (n + 1))
        result  = RayleighQuotientIteration().solve(A, exact * 1.01, perturbed(x, 1e-2))

        assert result.converged
        assert abs(result.eigenvalue - exact) < 1e-10

    def test_guess_not_modified(self):
        A       = create_symmetric_matrix(6)
        u0      = np.ones(6)
        copy    = u0.copy()
        RayleighQuotientIteration().solve(A, 3.2, u0)
        assert np.array_equal(u0, copy)

    def test_column_vector_guess(self):
        A       = create_symmetric_matrix(6)
        result  = RayleighQuotientIteration().solve(A, 3.2, np.ones((6, 1)))
        assert result.eigenvector.shape == (6,)

    def test_already_converged_guess(self):
        """An exact eigenvector stops before the first iteration."""
        A       = np.diag([1.0, 2.0, 5.0])
        result  = RayleighQuotientIteration().solve(A, 2.0, np.array([0.0, 1.0, 0.0]))

        assert result.converged
        assert result.iterations == 0
        assert result.eigenvalue == 2.0
        assert result.history_length == 1

    def test_default_shift_is_rayleigh_quotient(self):
        A       = create_symmetric_matrix(6)
        lam, x  = nearest_eigenpair(A, 4.0)
        result  = RayleighQuotientIteration().solve(A, None, perturbed(x, 1e-2))
        assert result.converged
        assert abs(result.eigenvalue - lam) < 1e-9

# ----------------------------------

class TestConvergenceOrder:
    """Local convergence orders: cubic for symmetric, quadratic for nonsymmetric one-sided."""

    def test_cubic_symmetric(self):
        A       = create_symmetric_matrix(10, seed=1)
        _, x    = nearest_eigenpair(A, 5.0)
        result  = RayleighQuotientIteration(tol=1e-12).solve(A, None, perturbed(x, 5e-2))
        pairs   = order_pairs(result.residuals)

        print(f"\nSymmetric residuals: {result.residuals}")
        for r_k, r_next in pairs:
            assert r_next <= 1e3 * r_k ** 3, f"{r_next:.2e} > C * {r_k:.2e}^3"

    def test_quadratic_nonsymmetric(self):
        A, S, _ = create_nonsymmetric_matrix(10, seed=2)
        result  = RayleighQuotientIteration(tol=1e-12).solve(A, None, perturbed(S[:, 4], 5e-2))
        pairs   = order_pairs(result.residuals)

        print(f"\nNonsymmetric one-sided residuals: {result.residuals}")
        assert result.converged
        assert abs(result.eigenvalue - 5.0) < 1e-8
        for r_k, r_next in pairs:
            assert r_next <= 1e3 * r_k ** 2, f"{r_next:.2e} > C * {r_k:.2e}^2"

    def test_two_sided_cubic_nonsymmetric(self):
        A, S, L = create_nonsymmetric_matrix(10, seed=2)
        u0      = perturbed(S[:, 4], 5e-2, seed=1)
        v0      = perturbed(L[:, 4], 5e-2, seed=2)
        result  = TwoSidedRayleighQuotientIteration(tol=1e-12).solve(A, None, u0, v0)
        pairs   = order_pairs(result.residuals)

        print(f"\nNonsymmetric two-sided residuals: {result.residuals}")
        assert result.converged
        assert abs(result.eigenvalue - 5.0) < 1e-8
        for r_k, r_next in pairs:
            assert r_next <= 1e3 * r_k ** 3, f"{r_next:.2e} > C * {r_k:.2e}^3"

    def test_two_sided_not_slower(self):
        """Nonsymmetric scenario: two-sided needs no more iterations than one-sided."""
        A, S, L = create_nonsymmetric_matrix(10, seed=7)
        u0      = perturbed(S[:, 2], 1e-3, seed=3)
        v0      = perturbed(L[:, 2], 1e-3, seed=4)
        one     = RayleighQuotientIteration(tol=1e-12).solve(A, 3.0 + 1e-3, u0)
        two     = TwoSidedRayleighQuotientIteration(tol=1e-12).solve(A, 3.0 + 1e-3, u0, v0)

        print(f"\nOne-sided: {one.iterations} iterations, two-sided: {two.iterations} iterations")
        assert one.converged and two.converged
        assert two.iterations <= one.iterations

# ----------------------------------

class TestNonsymmetric:
    """Random nonsymmetric matrices, possibly complex eigenvalues."""

    def test_complex_guess_reaches_eigenvalue(self):
        n       = 10
        A       = random_matrix(n, rng=10)
        u0      = random_unit_vector(n, rng=11, complex_valued=True)
        result  = RayleighQuotientIteration(maxiter=100).solve(A, A[-1, -1], u0)

        evals   = np.linalg.eigvals(A)
        assert result.converged
        assert np.min(np.abs(evals - result.eigenvalue)) < 1e-6 * max(1.0, abs(result.eigenvalue))

    def test_nearly_symmetric_gives_complex_pair(self):
        """A 1e-7 antisymmetric coupling of two close eigenvalues splits them into 1 +- 1e-7 i."""
        A       = np.diag([1.0, 1.0 + 1e-9, 3.0])
        A[0, 1] = 1e-7
        A[1, 0] = -1e-7
        u0      = np.array([1.0, 0.9j, 0.1])
        result  = RayleighQuotientIteration().solve(A, 1.0, u0)

        evals   = np.linalg.eigvals(A)
        assert result.converged
        assert isinstance(result.eigenvalue, complex)
        assert abs(result.eigenvalue.imag) > 5e-8
        assert np.min(np.abs(evals - result.eigenvalue)) < 1e-9

    def test_two_sided_left_vector(self):
        """The left vector approximates a left eigenvector: v* A = lam v*."""
        A, S, L = create_nonsymmetric_matrix(8, seed=3)
        u0      = perturbed(S[:, 5], 1e-2, seed=1)
        v0      = perturbed(L[:, 5], 1e-2, seed=2)
        result  = TwoSidedRayleighQuotientIteration().solve(A, 6.05, u0, v0)

        v       = result.left_eigenvector
        assert result.converged
        assert np.isclose(np.linalg.norm(v), 1.0)
        assert np.linalg.norm(A.conj().T @ v - np.conj(result.eigenvalue) * v) < 1e-7

# ----------------------------------

class TestTwoSidedEquivalence:
    """For symmetric A, real lam0 and v0 = u0 both variants produce the same iterates."""

    def test_same_sequence(self):
        A       = create_symmetric_matrix(10, seed=9)
        u0      = random_unit_vector(10, rng=12)
        lam0    = A[-1, -1]

        seq_one, seq_two = [], []
        one     = RayleighQuotientIteration(callback=lambda it, lam, res: seq_one.append(lam) or False).solve(A, lam0, u0)
        two     = TwoSidedRayleighQuotientIteration(callback=lambda it, lam, res: seq_two.append(lam) or False).solve(A, lam0, u0, u0)

        assert one.converged and two.converged
        assert one.iterations == two.iterations
        assert np.allclose(seq_one, seq_two, rtol=1e-8, atol=1e-10)
        assert abs(one.eigenvalue - two.eigenvalue) < 1e-10
        phase = np.vdot(two.eigenvector, one.eigenvector)
        assert np.allclose(one.eigenvector, phase * two.eigenvector, atol=1e-8)

    def test_default_left_vector(self):
        A       = create_symmetric_matrix(6, seed=9)
        _, x    = nearest_eigenpair(A, 2.0)
        result  = rayleigh_quotient_iteration(A, 2.1, perturbed(x, 1e-2), two_sided=True)
        assert result.converged
        assert result.left_eigenvector is not None

    def test_parallel_matches_serial(self):
        A, S, L = create_nonsymmetric_matrix(8, seed=4)
        u0      = perturbed(S[:, 1], 1e-2, seed=1)
        v0      = perturbed(L[:, 1], 1e-2, seed=2)
        serial  = TwoSidedRayleighQuotientIteration().solve(A, 2.1, u0, v0)
        par     = TwoSidedRayleighQuotientIteration(parallel=True).solve(A, 2.1, u0, v0)

        assert serial.iterations == par.iterations
        assert np.allclose(serial.residuals, par.residuals, rtol=1e-10, atol=1e-15)
        assert np.allclose(serial.eigenvector, par.eigenvector)

    def test_parallel_leaves_warning_filters(self):
        """Concurrent solves, the singular fallback included, never rewrite the global warning filters."""
        filters = list(warnings.filters)
        for seed in range(4):
            A   = random_matrix(10, rng=seed)
            u0  = random_unit_vector(10, rng=seed + 20, complex_valued=True)
            TwoSidedRayleighQuotientIteration(parallel=True, maxiter=5).solve(A, A[-1, -1], u0)
        TwoSidedRayleighQuotientIteration(parallel=True).solve(np.diag([1.0, 2.0, 3.0]), 2.0, np.ones(3))
        assert list(warnings.filters) == filters

# ----------------------------------

class TestRandomScenarios:
    """
    Random 10 x 10 matrices with lam0 = A[-1, -1] and random unit guesses.

    Symmetric: the Gaussian matrix G made symmetric, G + G^T, real guess.
    Nonsymmetric: the same G, with the same guess plus a random imaginary part.
    """

    SEEDS = range(8)

    @staticmethod
    def run_symmetric(seed):
        A   = random_matrix(10, rng=seed, symmetric=True)
        u0  = random_unit_vector(10, rng=seed + 100)
        return A, RayleighQuotientIteration(maxiter=50).solve(A, A[-1, -1], u0)

    @staticmethod
    def run_nonsymmetric(seed):
        A   = random_matrix(10, rng=seed)
        u0  = random_unit_vector(10, rng=seed + 100, complex_valued=True)
        one = RayleighQuotientIteration(maxiter=50).solve(A, A[-1, -1], u0)
        two = TwoSidedRayleighQuotientIteration(maxiter=50).solve(A, A[-1, -1], u0)
        return A, one, two

    @pytest.mark.parametrize("seed", SEEDS)
    def test_symmetric_converges_fast(self, seed):
        A, result = self.run_symmetric(seed)
        assert result.converged
        assert result.iterations <= 6
        assert np.min(np.abs(np.linalg.eigvalsh(A) - result.eigenvalue)) < 1e-8 * max(1.0, abs(result.eigenvalue))

    @pytest.mark.parametrize("seed", SEEDS)
    def test_nonsymmetric_converges(self, seed):
        A, one, two = self.run_nonsymmetric(seed)
        evals       = np.linalg.eigvals(A)
        for result in (one, two):
            assert result.converged
            assert np.min(np.abs(evals - result.eigenvalue)) < 1e-6 * max(1.0, abs(result.eigenvalue))

    def test_iteration_counts(self):
        """Nonsymmetric one-sided runs need more iterations than symmetric ones; two-sided recovers the rate."""
        sym     = [self.run_symmetric(seed)[1].iterations for seed in self.SEEDS]
        nonsym  = [self.run_nonsymmetric(seed)[1:] for seed in self.SEEDS]
        one     = [r.iterations for r, _ in nonsym]
        two     = [r.iterations for _, r in nonsym]

        print(f"\nsymmetric: {sym}\none-sided: {one}\ntwo-sided: {two}")
        assert sum(one) > sum(sym)
        assert sum(two) <= sum(one)

# ----------------------------------

class TestBoundaryScenarios:
    """Guesses orthogonal to the eigenvector closest to the shift."""

    def test_orthogonal_guess_no_crash(self):
        """u0 has no component along e3, so eigenvalue 3 is never reached."""
        A       = np.diag(np.arange(1.0, 7.0))
        u0      = np.ones(6)
        u0[2]   = 0.0
        result  = RayleighQuotientIteration().solve(A, 3.0 + 1e-3, u0)

        assert result.converged
        assert abs(result.eigenvalue - 3.0) > 0.5
        assert np.min(np.abs(np.arange(1.0, 7.0) - result.eigenvalue)) < 1e-9

    def test_exact_shift_singular_solve(self):
        """Shift equal to an eigenvalue: the regularized solve still makes progress."""
        A       = np.diag([1.0, 2.0, 3.0])
        result  = RayleighQuotientIteration().solve(A, 2.0, np.ones(3))

        assert result.converged
        assert abs(result.eigenvalue - 2.0) < 1e-12
        assert np.allclose(np.abs(result.eigenvector), [0.0, 1.0, 0.0], atol=1e-8)

    def test_max_iterations(self):
        A       = np.diag(np.arange(1.0, 7.0))
        u0      = np.ones(6)
        u0[2]   = 0.0
        result  = RayleighQuotientIteration(maxiter=1).solve(A, 3.0 + 1e-3, u0)

        assert not result.converged
        assert result.status is RQIStatus.MAX_ITER
        assert result.iterations == 1
        assert result.history_length == 2
        assert result.message

    def test_zero_iterations(self):
        A       = create_symmetric_matrix(5)
        result  = RayleighQuotientIteration(maxiter=0).solve(A, 2.5, np.ones(5))
        assert result.iterations == 0
        assert result.status is RQIStatus.MAX_ITER
        assert np.isclose(np.linalg.norm(result.eigenvector), 1.0)

# ----------------------------------

class TestFailures:
    """Error taxonomy and failure reporting."""

    def test_zero_vector(self):
        with pytest.raises(InvalidInputError) as exc:
            RayleighQuotientIteration().solve(np.eye(3), 1.0, np.zeros(3))
        assert exc.value.code is EigenErrorMsg.ZERO_VECTOR

    def test_dimension_mismatch(self):
        with pytest.raises(InvalidInputError) as exc:
            RayleighQuotientIteration().solve(np.eye(3), 1.0, np.ones(4))
        assert exc.value.code is EigenErrorMsg.DIM_MISMATCH

    def test_not_square(self):
        with pytest.raises(InvalidInputError) as exc:
            RayleighQuotientIteration().solve(np.ones((3, 4)), 1.0, np.ones(3))
        assert exc.value.code is EigenErrorMsg.NOT_SQUARE

    @pytest.mark.parametrize("lam0", [np.nan, np.inf, "one", [1.0, 2.0], True])
    def test_bad_shift(self, lam0):
        with pytest.raises(InvalidInputError):
            RayleighQuotientIteration().solve(np.eye(3), lam0, np.ones(3))

    @pytest.mark.parametrize("tol, maxiter", [(-1.0, 10), (np.nan, 10), (True, 10), ("1e-8", 10), (1e-10, -1), (1e-10, 2.5), (1e-10, False)])
    def test_bad_config(self, tol, maxiter):
        with pytest.raises(InvalidInputError):
            RayleighQuotientIteration(tol=tol, maxiter=maxiter)

    @pytest.mark.parametrize("tol, maxiter", [(np.int64(0), 10), (np.float32(1e-8), 10), (0, np.int64(5)), (1, 3)])
    def test_numpy_scalar_config(self, tol, maxiter):
        engine = RayleighQuotientIteration(tol=tol, maxiter=maxiter)
        assert type(engine.tol) is float and type(engine.maxiter) is int
        assert engine.tol == float(tol)

    def test_invalid_input_is_value_error(self):
        with pytest.raises(ValueError):
            RayleighQuotientIteration().solve(np.eye(3), 1.0, np.array([1.0, np.nan, 0.0]))

    def test_left_vector_without_two_sided(self):
        with pytest.raises(InvalidInputError):
            rayleigh_quotient_iteration(np.eye(3), 1.0, np.ones(3), np.ones(3))

    def test_raise_on_failure(self):
        A       = np.diag(np.arange(1.0, 7.0))
        solver  = RayleighQuotientIteration(maxiter=1, raise_on_failure=True)
        with pytest.raises(ConvergenceFailureError) as exc:
            solver.solve(A, 3.0 + 1e-3, np.ones(6))
        assert exc.value.result is not None
        assert exc.value.result.iterations == 1
        assert exc.value.code is EigenErrorMsg.CONV_FAILED

    def test_callback_stop(self):
        A       = create_symmetric_matrix(10, seed=5)
        calls   = []

        def stop_after_first(iteration, lam, res):
            calls.append(iteration)
            return True

        # shift halfway between eigenvalues 5 and 6, one step cannot converge
        result  = RayleighQuotientIteration(callback=stop_after_first).solve(A, 5.5, np.ones(10))
        assert result.status is RQIStatus.STOPPED
        assert not result.converged
        assert result.iterations == 1
        assert calls == [1]

    def test_two_sided_orthogonal_guesses(self):
        """v0 orthogonal to u0 without a shift: no initial quotient exists."""
        with pytest.raises(InvalidInputError):
            TwoSidedRayleighQuotientIteration().solve(np.diag([1.0, 2.0]), None, [1.0, 0.0], [0.0, 1.0])

    def test_denominator_collapse(self):
        """|v* u| below orth_tol stops with SINGULAR and the last valid pair."""
        A       = create_symmetric_matrix(5)
        u0      = np.ones(5)
        solver  = TwoSidedRayleighQuotientIteration(orth_tol=2.0)
        result  = solver.solve(A, 2.5, u0)

        assert result.status is RQIStatus.SINGULAR
        assert not result.converged
        assert result.iterations == 0
        assert result.history_length == 1
        assert np.allclose(result.eigenvector, u0 / np.linalg.norm(u0))

        with pytest.raises(SingularSystemError) as exc:
            TwoSidedRayleighQuotientIteration(orth_tol=2.0, raise_on_failure=True).solve(A, 2.5, u0)
        assert exc.value.code is EigenErrorMsg.DENOM_COLLAPSE
        assert exc.value.result.status is RQIStatus.SINGULAR

# ----------------------------------
#! EOF
# ----------------------------------
