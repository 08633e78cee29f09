"""
Inference algorithms for discrete HMMs.

All functions take a :class:`HiddenMarkovModel` and a non-empty sequence of
observation symbol ids. Unknown symbols raise ``DomainError`` and an empty
sequence raises ``StructuralError`` before any computation.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np

from .model import HiddenMarkovModel
from ..exceptions import NormalizationError
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass
class ForwardResult:
    alpha: np.ndarray
    likelihood: float
    log_likelihood: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'likelihood': self.likelihood,
            'log_likelihood': self.log_likelihood,
            'alpha': self.alpha.tolist()
        }


@dataclass
class ViterbiResult:
    path: List[str]
    probability: float
    log_probability: float
    indices: List[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': list(self.path),
            'probability': self.probability,
            'log_probability': self.log_probability
        }


def _log(x: np.ndarray) -> np.ndarray:
    with np.errstate(divide='ignore'):
        return np.log(x)


def forward(model: HiddenMarkovModel, observations: Sequence[Any]) -> ForwardResult:
    """
    Forward algorithm.

    ``alpha[t, i] = P(o_0..o_t, q_t = i)``; the likelihood of the sequence is
    ``sum_i alpha[T-1, i]``. The log-likelihood is accumulated from per-step
    scaling factors so it stays finite where ``alpha`` underflows.

    Args:
        model: HMM
        observations: Observation symbol ids

    Returns:
        ForwardResult with unscaled alpha [T, n_states]; an impossible
        sequence gives likelihood 0 and log-likelihood -inf

    Raises:
        NormalizationError: If pi, A or B is not stochastic
    """
    model.validate_stochastic_matrices()
    obs = model.encode(observations)
    T = len(obs)
    A, B, pi = model.A, model.B, model.pi

    alpha = np.zeros((T, model.n_states))
    alpha[0] = pi * B[:, obs[0]]
    for t in range(1, T):
        alpha[t] = (alpha[t - 1] @ A) * B[:, obs[t]]

    # Scaled pass for the log-likelihood
    log_likelihood = 0.0
    scaled = pi * B[:, obs[0]]
    for t in range(T):
        if t > 0:
            scaled = (scaled @ A) * B[:, obs[t]]
        c = scaled.sum()
        if c == 0:
            log_likelihood = -np.inf
            break
        log_likelihood += np.log(c)
        scaled = scaled / c

    likelihood = float(alpha[-1].sum())
    if likelihood == 0 and np.isfinite(log_likelihood):
        likelihood = float(np.exp(log_likelihood))

    logger.debug(f"Forward completed: T={T}, log_likelihood={log_likelihood:.6f}")
    return ForwardResult(alpha=alpha, likelihood=likelihood, log_likelihood=float(log_likelihood))


def backward(model: HiddenMarkovModel, observations: Sequence[Any]) -> np.ndarray:
    """
    Backward algorithm.

    Returns:
        beta [T, n_states] with ``beta[t, i] = P(o_t+1..o_T-1 | q_t = i)``
        and ``beta[T-1] = 1``
    """
    model.validate_stochastic_matrices()
    obs = model.encode(observations)
    T = len(obs)

    beta = np.zeros((T, model.n_states))
    beta[T - 1] = 1.0
    for t in range(T - 2, -1, -1):
        beta[t] = model.A @ (model.B[:, obs[t + 1]] * beta[t + 1])
    return beta


def forward_backward_scaled(model: HiddenMarkovModel,
                            observations: Sequence[Any]) -> Tuple[np.ndarray, np.ndarray, np.ndarray, float]:
    """
    Compute forward-backward algorithm with scaling to prevent numerical underflow.

    Args:
        model: HMM
        observations: Observation symbol ids

    Returns:
        Tuple of:
        - alpha: Scaled forward probabilities [T, n_states]
        - beta: Scaled backward probabilities [T, n_states]
        - c_scale: Scaling coefficients [T]
        - log_likelihood: Log-likelihood of the observation sequence

    Raises:
        NormalizationError: If the parameters are not stochastic or the
            sequence has zero probability under the model
    """
    model.validate_stochastic_matrices()
    obs = model.encode(observations)
    T = len(obs)
    A, B, pi = model.A, model.B, model.pi

    alpha = np.zeros((T, model.n_states))
    beta = np.zeros((T, model.n_states))
    c_scale = np.zeros(T)

    for t in range(T):
        alpha[t] = pi * B[:, obs[0]] if t == 0 else (alpha[t - 1] @ A) * B[:, obs[t]]
        c_scale[t] = alpha[t].sum()
        if c_scale[t] == 0:
            raise NormalizationError(f"Forward probabilities sum to zero at time {t}; "
                                     f"the sequence is impossible under the model")
        alpha[t] /= c_scale[t]

    beta[T - 1] = 1.0
    for t in range(T - 2, -1, -1):
        beta[t] = A @ (B[:, obs[t + 1]] * beta[t + 1])
        beta[t] /= c_scale[t + 1]

    # log P(O | model) = sum_t log c_t
    log_likelihood = float(np.sum(np.log(c_scale)))

    logger.debug(f"Forward-backward completed: T={T}, log_likelihood={log_likelihood:.6f}")
    return alpha, beta, c_scale, log_likelihood


def score(model: HiddenMarkovModel, observations: Sequence[Any]) -> float:
    """Log-likelihood of an observation sequence (-inf if impossible)."""
    return forward(model, observations).log_likelihood


def posterior_marginals(model: HiddenMarkovModel, observations: Sequence[Any]) -> np.ndarray:
    """
    State posteriors ``gamma[t, i] = P(q_t = i | O)``.

    Raises:
        NormalizationError: If the sequence has zero probability under the model
    """
    alpha, beta, _, _ = forward_backward_scaled(model, observations)
    gamma = alpha * beta
    return gamma / gamma.sum(axis=1, keepdims=True)


def viterbi(model: HiddenMarkovModel, observations: Sequence[Any]) -> ViterbiResult:
    """
    Most likely hidden state path, computed in log space.

    Ties are broken in favour of the lowest state index, both in the
    back-pointers and in the final state.

    Returns:
        ViterbiResult with the path as state ids and its joint probability
        ``P(path, O)``
    """
    model.validate_stochastic_matrices()
    obs = model.encode(observations)
    T = len(obs)
    log_A, log_B, log_pi = _log(model.A), _log(model.B), _log(model.pi)

    delta = np.zeros((T, model.n_states))
    psi = np.zeros((T, model.n_states), dtype=int)

    delta[0] = log_pi + log_B[:, obs[0]]
    for t in range(1, T):
        # candidates[i, j] = delta[t-1, i] + log A[i, j]
        candidates = delta[t - 1][:, np.newaxis] + log_A
        psi[t] = np.argmax(candidates, axis=0)
        delta[t] = candidates[psi[t], np.arange(model.n_states)] + log_B[:, obs[t]]

    indices = [0] * T
    indices[T - 1] = int(np.argmax(delta[T - 1]))
    for t in range(T - 1, 0, -1):
        indices[t - 1] = int(psi[t, indices[t]])

    log_probability = float(delta[T - 1, indices[T - 1]])
    if not np.isfinite(log_probability):
        logger.warning("Observation sequence is impossible under the model; Viterbi path is arbitrary")

    logger.debug(f"Viterbi completed: T={T}, log_probability={log_probability:.6f}")
    return ViterbiResult(
        path=model.decode_states(indices),
        probability=float(np.exp(log_probability)),
        log_probability=log_probability,
        indices=indices
    )
