"""
Stationary distribution of a Markov chain.

Three solvers are available:

- ``iterative``: repeat ``pi <- pi P`` from the uniform distribution until the
  largest componentwise change drops below the tolerance
- ``power``: multiply ``P`` by itself until all rows
  of ``P^k`` agree
- ``eigenvalue``: left eigenvector of ``P`` for the eigenvalue closest to 1
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from .chain import MarkovChain
from ..config import resolve
from ..exceptions import ConvergenceFailure, StructuralError
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass
class StationaryResult:
    """Outcome of a stationary-distribution solve."""
    distribution: np.ndarray
    states: List[str]
    converged: bool
    iterations: int
    max_difference: float
    method: str

    def as_dict(self) -> Dict[str, float]:
        return {state: float(p) for state, p in zip(self.states, self.distribution)}

    def raise_for_convergence(self) -> 'StationaryResult':
        """
        Raises:
            ConvergenceFailure: If the solver stopped before converging
        """
        if not self.converged:
            raise ConvergenceFailure(
                f"Stationary distribution did not converge after {self.iterations} iterations "
                f"(max difference {self.max_difference:.3e})",
                iterations=self.iterations,
                result=self
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            'distribution': self.as_dict(),
            'converged': self.converged,
            'iterations': self.iterations,
            'max_difference': self.max_difference,
            'method': self.method
        }


def _iterative(chain: MarkovChain, tolerance: float, max_iterations: int):
    P = chain.P
    distribution = np.ones(chain.n_states) / chain.n_states
    max_difference = np.inf

    for iteration in range(1, max_iterations + 1):
        updated = distribution @ P
        max_difference = float(np.max(np.abs(updated - distribution)))
        distribution = updated
        if max_difference < tolerance:
            return distribution, True, iteration, max_difference

    return distribution, False, max_iterations, max_difference


def _power(chain: MarkovChain, tolerance: float, max_iterations: int):
    P = chain.P
    power = P.copy()
    max_difference = np.inf

    for iteration in range(1, max_iterations + 1):
        power = power @ P
        max_difference = float(np.max(power.max(axis=0) - power.min(axis=0)))
        if max_difference < tolerance:
            return power[0].copy(), True, iteration, max_difference

    return power[0].copy(), False, max_iterations, max_difference


def _eigenvalue(chain: MarkovChain, tolerance: float, max_iterations: int):
    eigenvalues, eigenvectors = np.linalg.eig(chain.P.T)
    k = int(np.argmin(np.abs(eigenvalues - 1.0)))
    vector = np.real(eigenvectors[:, k])
    total = vector.sum()
    if abs(total) < 1e-12:
        return np.ones(chain.n_states) / chain.n_states, False, 1, np.inf

    distribution = vector / total
    converged = bool(abs(eigenvalues[k] - 1.0) < tolerance and np.all(distribution > -tolerance))
    distribution = np.clip(distribution, 0.0, None)
    distribution /= distribution.sum()
    max_difference = float(np.max(np.abs(distribution @ chain.P - distribution)))
    return distribution, converged, 1, max_difference


STATIONARY_METHODS = {
    'iterative': _iterative,
    'power': _power,
    'eigenvalue': _eigenvalue
}


def stationary_distribution(chain: MarkovChain,
                            tolerance: Optional[float] = None,
                            max_iterations: Optional[int] = None,
                            method: Optional[str] = None) -> StationaryResult:
    """
    Compute the stationary distribution ``pi = pi P`` of a chain.

    A non-ergodic chain is still solved; the result may then depend on the
    method, or fail to converge (periodic chains), and a warning is logged.

    Args:
        chain: Markov chain
        tolerance: Convergence tolerance (default from config)
        max_iterations: Iteration cap (default from config)
        method: ``'iterative'``, ``'power'`` or ``'eigenvalue'``

    Returns:
        StationaryResult with ``converged=False`` if the cap was hit

    Raises:
        NormalizationError: If the chain is not row-stochastic
        ValueError: If the method is unknown
    """
    tolerance = resolve(tolerance, 'markov', 'stationary_tolerance')
    max_iterations = resolve(max_iterations, 'markov', 'max_iterations')
    method = resolve(method, 'markov', 'stationary_method')

    if method not in STATIONARY_METHODS:
        raise ValueError(f"Unknown stationary method '{method}'. "
                         f"Expected one of {sorted(STATIONARY_METHODS)}")

    chain.ensure_valid()
    if not chain.is_ergodic():
        logger.warning("Chain is not ergodic; the stationary distribution may not be unique "
                       "or iteration may not converge")

    distribution, converged, iterations, max_difference = STATIONARY_METHODS[method](
        chain, tolerance, max_iterations)

    if converged:
        logger.debug(f"Stationary distribution ({method}) converged after {iterations} iterations")
    else:
        logger.warning(f"Stationary distribution ({method}) did not converge after {iterations} "
                       f"iterations (max difference {max_difference:.3e})")

    return StationaryResult(
        distribution=distribution,
        states=list(chain.states),
        converged=converged,
        iterations=iterations,
        max_difference=max_difference,
        method=method
    )


def verify_stationary(chain: MarkovChain, distribution, tolerance: Optional[float] = None) -> Dict[str, Any]:
    """
    Check how close ``distribution`` is to a fixed point of ``pi P``.

    Returns:
        Dictionary with the product ``pi P``, the largest residual and whether
        it is below ``tolerance``
    """
    tolerance = resolve(tolerance, 'markov', 'stationary_tolerance')
    if isinstance(distribution, StationaryResult):
        distribution = distribution.distribution
    pi = np.asarray(distribution, dtype=float)
    if pi.shape != (chain.n_states,):
        raise StructuralError(f"Distribution shape {pi.shape} doesn't match ({chain.n_states},)")

    product = pi @ chain.P
    residual = float(np.max(np.abs(product - pi)))
    return {
        'product': product,
        'residual': residual,
        'is_stationary': residual < tolerance
    }
