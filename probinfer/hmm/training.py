"""
Baum-Welch parameter estimation.

Each iteration runs the scaled forward-backward pass on every training
sequence, accumulates the expected counts from the state posteriors gamma and
the transition posteriors xi, and re-estimates::

    pi'     = mean over sequences of gamma_0
    A'[i,j] = sum_t<T-1 xi_t[i,j] / sum_t<T-1 gamma_t[i]
    B'[i,k] = sum_t:o_t=k gamma_t[i] / sum_t gamma_t[i]

An optional Dirichlet pseudo-count ``regularization_alpha`` is added to every
numerator. The input model is never modified; a new one is returned.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .model import HiddenMarkovModel
from .algorithms import forward_backward_scaled
from ..config import resolve
from ..exceptions import ConvergenceFailure, StructuralError
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass
class BaumWelchResult:
    """Trained model plus convergence diagnostics."""
    model: HiddenMarkovModel
    iterations: int
    converged: bool
    log_likelihood_history: List[float] = field(default_factory=list)
    improvement_history: List[float] = field(default_factory=list)

    @property
    def final_log_likelihood(self) -> float:
        return self.log_likelihood_history[-1]

    @property
    def transition_matrix(self) -> np.ndarray:
        return self.model.A.copy()

    @property
    def emission_matrix(self) -> np.ndarray:
        return self.model.B.copy()

    @property
    def initial_probabilities(self) -> np.ndarray:
        return self.model.pi.copy()

    def raise_for_convergence(self) -> 'BaumWelchResult':
        """
        Raises:
            ConvergenceFailure: If training hit the iteration cap
        """
        if not self.converged:
            raise ConvergenceFailure(
                f"Baum-Welch did not converge after {self.iterations} iterations",
                iterations=self.iterations,
                result=self
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        matrices = self.model.matrices_to_dict()
        return {
            'transition_matrix': matrices['transitionMatrix'],
            'emission_matrix': matrices['emissionMatrix'],
            'initial_probabilities': matrices['initialProbabilities'],
            'iterations': self.iterations,
            'converged': self.converged,
            'final_log_likelihood': self.final_log_likelihood,
            'log_likelihood_history': list(self.log_likelihood_history)
        }


def _check_sequences(sequences: Sequence[Sequence[Any]]) -> None:
    if len(sequences) == 0:
        raise StructuralError("At least one training sequence is required")
    for seq_idx, observations in enumerate(sequences):
        if len(observations) == 0:
            raise StructuralError(f"Sequence {seq_idx} is empty")


def reestimate(model: HiddenMarkovModel,
               sequences: Sequence[Sequence[Any]],
               regularization_alpha: float = 0.0) -> Tuple[HiddenMarkovModel, float]:
    """
    One Baum-Welch step (E-step plus M-step).

    States that are never visited (zero expected occupancy) keep their
    previous transition and emission rows.

    Args:
        model: Current model
        sequences: Observation sequences of symbol ids
        regularization_alpha: Dirichlet pseudo-count added to every count

    Returns:
        Tuple of (re-estimated model, total log-likelihood of ``model``)

    Raises:
        NormalizationError: If a sequence is impossible under ``model`` or
            the re-estimated rows are not stochastic
    """
    _check_sequences(sequences)
    n_states, n_obs = model.n_states, model.n_observations
    A, B = model.A, model.B

    pi_numerator = np.zeros(n_states)
    A_numerator = np.zeros((n_states, n_states))
    A_denominator = np.zeros(n_states)
    B_numerator = np.zeros((n_states, n_obs))
    B_denominator = np.zeros(n_states)
    total_log_likelihood = 0.0

    for observations in sequences:
        obs = model.encode(observations)
        alpha, beta, _, log_likelihood = forward_backward_scaled(model, observations)
        total_log_likelihood += log_likelihood

        gamma = alpha * beta
        gamma = gamma / gamma.sum(axis=1, keepdims=True)

        # xi[t, i, j] proportional to alpha[t, i] A[i, j] B[j, o_t+1] beta[t+1, j]
        xi = (alpha[:-1, :, np.newaxis] * A[np.newaxis, :, :]
              * (B[:, obs[1:]].T * beta[1:])[:, np.newaxis, :])
        xi_sums = xi.sum(axis=(1, 2), keepdims=True)
        xi = np.divide(xi, xi_sums, out=np.zeros_like(xi), where=xi_sums > 0)

        pi_numerator += gamma[0]
        A_numerator += xi.sum(axis=0)
        A_denominator += gamma[:-1].sum(axis=0)
        for k in range(n_obs):
            B_numerator[:, k] += gamma[obs == k].sum(axis=0)
        B_denominator += gamma.sum(axis=0)

    pi_new = pi_numerator + regularization_alpha
    pi_new = pi_new / pi_new.sum()

    A_new = A.copy()
    B_new = B.copy()
    for i in range(n_states):
        denominator = A_denominator[i] + n_states * regularization_alpha
        if denominator > 0:
            A_new[i] = (A_numerator[i] + regularization_alpha) / denominator
        denominator = B_denominator[i] + n_obs * regularization_alpha
        if denominator > 0:
            B_new[i] = (B_numerator[i] + regularization_alpha) / denominator

    updated = model.with_parameters(pi_new, A_new, B_new)
    updated.validate_stochastic_matrices()

    logger.debug(f"Parameters re-estimated: total_log_likelihood={total_log_likelihood:.6f}")
    return updated, total_log_likelihood


def total_log_likelihood(model: HiddenMarkovModel, sequences: Sequence[Sequence[Any]]) -> float:
    """Sum of the log-likelihoods of all sequences."""
    return float(sum(forward_backward_scaled(model, observations)[3] for observations in sequences))


def train(model: HiddenMarkovModel,
          sequences: Sequence[Sequence[Any]],
          max_iterations: Optional[int] = None,
          convergence_threshold: Optional[float] = None,
          regularization_alpha: Optional[float] = None,
          verbose: bool = False) -> BaumWelchResult:
    """
    Train an HMM on one or more sequences with Baum-Welch.

    Training stops when the log-likelihood improvement of an iteration falls
    below ``convergence_threshold`` or after ``max_iterations`` iterations.

    Args:
        model: Initial model (left unchanged)
        sequences: Observation sequences of symbol ids
        max_iterations: Iteration cap (default from config)
        convergence_threshold: Minimum log-likelihood improvement (default from config)
        regularization_alpha: Dirichlet pseudo-count (default from config, 0)
        verbose: Log progress at INFO level

    Returns:
        BaumWelchResult with the trained model; ``converged`` is False if the
        cap was reached

    Raises:
        StructuralError: If there are no sequences or one is empty
        DomainError: If a sequence contains an unknown symbol
        NormalizationError: If the model is invalid or a sequence is impossible under it
    """
    max_iterations = resolve(max_iterations, 'hmm', 'max_iterations')
    convergence_threshold = resolve(convergence_threshold, 'hmm', 'convergence_threshold')
    regularization_alpha = resolve(regularization_alpha, 'hmm', 'regularization_alpha')

    _check_sequences(sequences)
    for observations in sequences:
        model.encode(observations)
    model.validate_stochastic_matrices()

    current = model
    prev_log_likelihood = total_log_likelihood(current, sequences)
    log_likelihood_history = [prev_log_likelihood]
    improvement_history = []
    converged = False

    if verbose:
        logger.info(f"Starting HMM training with {len(sequences)} sequences")
        logger.info(f"Initial log-likelihood: {prev_log_likelihood:.6f}")

    for iteration in range(max_iterations):
        current, _ = reestimate(current, sequences, regularization_alpha)
        current_log_likelihood = total_log_likelihood(current, sequences)

        improvement = current_log_likelihood - prev_log_likelihood
        log_likelihood_history.append(current_log_likelihood)
        improvement_history.append(improvement)

        if verbose:
            logger.info(f"Iteration {iteration + 1}: log_likelihood={current_log_likelihood:.6f}, "
                        f"improvement={improvement:.6f}")

        # EM never decreases the likelihood up to rounding
        if improvement < -1e-6:
            logger.warning(f"Log-likelihood decreased by {-improvement:.6f} at iteration {iteration + 1}")

        if improvement < convergence_threshold:
            converged = True
            break

        prev_log_likelihood = current_log_likelihood

    if not converged:
        logger.warning(f"Training stopped after {max_iterations} iterations without convergence")

    logger.debug(f"Training completed: converged={converged}, iterations={len(improvement_history)}")

    return BaumWelchResult(
        model=current,
        iterations=len(improvement_history),
        converged=converged,
        log_likelihood_history=log_likelihood_history,
        improvement_history=improvement_history
    )


def baum_welch(model: HiddenMarkovModel,
               observations: Sequence[Any],
               max_iterations: Optional[int] = None,
               convergence_threshold: Optional[float] = None,
               regularization_alpha: Optional[float] = None) -> BaumWelchResult:
    """Baum-Welch on a single observation sequence. See :func:`train`."""
    return train(model, [observations], max_iterations, convergence_threshold, regularization_alpha)
