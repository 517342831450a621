from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from scipy.special import softmax, xlog1py, xlogy


# =============================================================================
# Exceptions
# =============================================================================


class InputError(ValueError):
    """Raised when read counts or depths cannot be clustered."""


class ConfigurationError(ValueError):
    """Raised when a DPClusteringSpec holds an invalid setting."""


class ComputationError(FloatingPointError):
    """
    Raised when the sampler or a post-processing step degenerates numerically.

    Attributes
    ----------
    iteration : int or None
        1-based Gibbs iteration where the problem was detected.
    mutation : int or None
        0-based index of the offending mutation, when applicable.
    """

    def __init__(self, message: str, iteration: Optional[int] = None, mutation: Optional[int] = None):
        location = []
        if iteration is not None:
            location.append(f"iteration {iteration}")
        if mutation is not None:
            location.append(f"mutation {mutation}")
        if location:
            message = f"{message} ({', '.join(location)})"
        super().__init__(message)
        self.iteration = iteration
        self.mutation = mutation


# =============================================================================
# Numeric primitives
# =============================================================================


def binomial_loglik(alt: np.ndarray, depth: np.ndarray, theta: np.ndarray) -> np.ndarray:
    """
    Binomial log-likelihood of every mutation under every cluster VAF.

    The binomial coefficient is dropped since it is constant across
    clusters for a given mutation:
        log L = y log(θ) + (N - y) log(1 - θ)

    Parameters
    ----------
    alt : np.ndarray
        Alt read counts, shape (n,).
    depth : np.ndarray
        Total depth, shape (n,).
    theta : np.ndarray
        Cluster VAF parameters, shape (C,).

    Returns
    -------
    np.ndarray
        Log-likelihood matrix of shape (n, C).
    """
    y = np.asarray(alt, dtype=np.float64)[:, None]
    n = np.asarray(depth, dtype=np.float64)[:, None]
    theta = np.asarray(theta, dtype=np.float64)[None, :]
    with np.errstate(divide="ignore"):
        return xlogy(y, theta) + xlog1py(n - y, -theta)


def log_stick_prior(stick_fractions: np.ndarray) -> np.ndarray:
    """
    Log prior mass of each cluster under the truncated stick-breaking prior.

        log π_c = log V_c + Σ_{j<c} log(1 - V_j)

    The last stick fraction is 1, so the remaining stick is fully
    allocated and the masses sum to one.
    """
    v = np.asarray(stick_fractions, dtype=np.float64)
    with np.errstate(divide="ignore"):
        log_v = np.log(v)
        log_rest = np.log1p(-v[:-1])
    return log_v + np.concatenate(([0.0], np.cumsum(log_rest)))


def normalize_log_rows(log_p: np.ndarray, iteration: Optional[int] = None) -> np.ndarray:
    """
    Turn rows of unnormalized log-probabilities into categorical distributions.

    Each row is shifted by its maximum, exponentiated and divided by its
    sum, so large negative log-likelihoods never underflow to an all-zero
    row. Returns a new array; the input is left untouched.

    Raises
    ------
    ComputationError
        If a row has no finite entry (all -inf or NaN).
    """
    log_p = np.asarray(log_p, dtype=np.float64)
    row_max = log_p.max(axis=1)
    bad = ~np.isfinite(row_max) | np.isnan(log_p).any(axis=1)
    if bad.any():
        raise ComputationError(
            "cluster log-likelihoods have no finite value",
            iteration=iteration,
            mutation=int(np.flatnonzero(bad)[0]),
        )
    return softmax(log_p, axis=1)


def sample_categorical(probs: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """
    Draw one category index per row of a probability matrix.

    Equivalent to a single multinomial trial per row, mapped back to the
    index of the chosen category.
    """
    probs = np.asarray(probs, dtype=np.float64)
    cdf = np.cumsum(probs, axis=1)
    u = rng.random(probs.shape[0]) * cdf[:, -1]
    idx = (cdf <= u[:, None]).sum(axis=1)
    return np.minimum(idx, probs.shape[1] - 1).astype(np.int64)


def stick_breaking_weights(stick_fractions: np.ndarray) -> np.ndarray:
    """
    Convert stick-breaking fractions into mixture weights.

        w_0 = V_0
        w_i = V_i × Π_{j<i} (1 - V_j)

    Parameters
    ----------
    stick_fractions : np.ndarray
        Shape (C,) for one iteration or (iterations, C) for many.

    Returns
    -------
    np.ndarray
        Weights with the same shape as the input.
    """
    v = np.asarray(stick_fractions, dtype=np.float64)
    remaining = np.cumprod(1.0 - v, axis=-1)
    shifted = np.ones_like(v)
    shifted[..., 1:] = remaining[..., :-1]
    return v * shifted


# =============================================================================
# Data classes
# =============================================================================


@dataclass(frozen=True)
class Observations:
    """
    Per-mutation read counts, validated once at entry.

    ``vaf`` is derived from ``alt / depth`` on construction.
    """

    alt: np.ndarray
    depth: np.ndarray
    vaf: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "alt", np.array(self.alt, copy=True))
        object.__setattr__(self, "depth", np.array(self.depth, copy=True))
        object.__setattr__(self, "vaf", self.alt / self.depth)
        for arr in (self.alt, self.depth, self.vaf):
            arr.setflags(write=False)

    @property
    def n_mutations(self) -> int:
        return len(self.alt)


def prepare_observations(alt, depth) -> Observations:
    """
    Validate read counts and depths and wrap them as Observations.

    Raises
    ------
    InputError
        On mismatched lengths, empty input, non-integer or negative counts,
        non-positive depth, alt > depth, or any mutation with VAF = 0.
    """
    alt = np.asarray(alt, dtype=np.float64)
    depth = np.asarray(depth, dtype=np.float64)

    if alt.ndim != 1 or depth.ndim != 1:
        raise InputError("alt and depth must be one-dimensional sequences")
    if alt.shape != depth.shape:
        raise InputError(
            f"alt and depth must have equal length, got {alt.size} and {depth.size}"
        )
    if alt.size == 0:
        raise InputError("at least one mutation is required")
    if not (np.all(np.isfinite(alt)) and np.all(np.isfinite(depth))):
        raise InputError("alt and depth must be finite")
    if np.any(alt != np.round(alt)) or np.any(depth != np.round(depth)):
        raise InputError("alt and depth must be integer read counts")
    if np.any(depth <= 0):
        raise InputError("depth must be positive for every mutation")
    if np.any(alt < 0) or np.any(alt > depth):
        raise InputError("alt must lie between 0 and depth")
    n_zero = int(np.sum(alt == 0))
    if n_zero:
        raise InputError(
            f"{n_zero} mutations have VAF = 0.0, make sure these mutations "
            "are removed before clustering"
        )

    return Observations(alt=alt.astype(np.int64), depth=depth.astype(np.int64))


@dataclass
class SamplerState:
    """
    Latent variables of one Gibbs iteration.

    ``assignment`` holds 0-based cluster indices.
    """

    iteration: int
    stick_fractions: np.ndarray
    cluster_vaf: np.ndarray
    concentration: float
    assignment: np.ndarray

    @property
    def weights(self) -> np.ndarray:
        return stick_breaking_weights(self.stick_fractions)

    @property
    def occupied(self) -> np.ndarray:
        """Sorted indices of clusters holding at least one mutation."""
        return np.unique(self.assignment)


class IterationHistory:
    """
    Append-only record of every Gibbs iteration.

    Storage is preallocated for ``iterations`` rows; the sampler appends one
    :class:`SamplerState` per iteration and freezes the history once the
    chain has finished. Arrays exposed to callers are read-only views.

    Parameters
    ----------
    iterations : int
        Capacity of the history.
    max_clusters : int
        Truncation width C.
    n_mutations : int
        Number of observations.
    """

    def __init__(self, iterations: int, max_clusters: int, n_mutations: int):
        self.iterations = iterations
        self.max_clusters = max_clusters
        self.n_mutations = n_mutations
        self.n_completed = 0
        self.frozen = False

        self._stick_fractions = np.ones((iterations, max_clusters), dtype=np.float64)
        self._cluster_vaf = np.zeros((iterations, max_clusters), dtype=np.float64)
        self._concentration = np.zeros(iterations, dtype=np.float64)
        self._assignment = np.zeros((iterations, n_mutations), dtype=np.int64)

    def append(self, state: SamplerState) -> None:
        if self.frozen:
            raise RuntimeError("history is frozen")
        if self.n_completed >= self.iterations:
            raise RuntimeError("history is full")
        m = self.n_completed
        self._stick_fractions[m] = state.stick_fractions
        self._cluster_vaf[m] = state.cluster_vaf
        self._concentration[m] = state.concentration
        self._assignment[m] = state.assignment
        self.n_completed += 1

    def freeze(self) -> "IterationHistory":
        for arr in (
            self._stick_fractions,
            self._cluster_vaf,
            self._concentration,
            self._assignment,
        ):
            arr.setflags(write=False)
        self.frozen = True
        return self

    def state(self, index: int) -> SamplerState:
        """Snapshot of a stored iteration (0-based row index)."""
        if not -self.n_completed <= index < self.n_completed:
            raise IndexError(f"iteration {index} has not been sampled")
        index = index % self.n_completed
        return SamplerState(
            iteration=index + 1,
            stick_fractions=self._stick_fractions[index].copy(),
            cluster_vaf=self._cluster_vaf[index].copy(),
            concentration=float(self._concentration[index]),
            assignment=self._assignment[index].copy(),
        )

    def _view(self, arr: np.ndarray) -> np.ndarray:
        out = arr[: self.n_completed]
        out.flags.writeable = False
        return out

    @property
    def stick_fractions(self) -> np.ndarray:
        return self._view(self._stick_fractions)

    @property
    def cluster_vaf(self) -> np.ndarray:
        return self._view(self._cluster_vaf)

    @property
    def concentration(self) -> np.ndarray:
        return self._view(self._concentration)

    @property
    def assignment(self) -> np.ndarray:
        return self._view(self._assignment)

    def weights(self) -> np.ndarray:
        """Stick-breaking weights of every stored iteration, (n_completed, C)."""
        return stick_breaking_weights(self.stick_fractions)

    def retained(self, burn_in: int) -> slice:
        """Row slice of the iterations kept after discarding ``burn_in``."""
        if not 0 <= burn_in < self.n_completed:
            raise ConfigurationError(
                f"burn_in must satisfy 0 <= burn_in < {self.n_completed}"
            )
        return slice(burn_in, self.n_completed)

    def __len__(self) -> int:
        return self.n_completed

    def __repr__(self) -> str:
        status = "frozen" if self.frozen else "sampling"
        return (
            f"IterationHistory(iterations={self.n_completed}/{self.iterations}, "
            f"max_clusters={self.max_clusters}, n_mutations={self.n_mutations}, "
            f"status={status})"
        )


@dataclass
class DensityEstimate:
    """
    Posterior VAF density on a regular grid with a pointwise credible band.
    """

    x: np.ndarray
    mean: np.ndarray
    lower: np.ndarray
    upper: np.ndarray

    def __len__(self) -> int:
        return len(self.x)

    def to_dataframe(self):
        """Return the density as a pandas DataFrame (columns x, mean, lq, uq)."""
        import pandas as pd

        return pd.DataFrame(
            {"x": self.x, "mean": self.mean, "lq": self.lower, "uq": self.upper}
        )


@dataclass
class ClusterSummary:
    """
    Posterior mean weight and frequency of each cluster slot.

    Supported clusters are those whose mean weight exceeds the cutoff.
    Both the supported and the full lists are sorted by frequency.
    """

    weights: np.ndarray
    frequencies: np.ndarray
    slots: np.ndarray

    all_weights: np.ndarray
    all_frequencies: np.ndarray
    all_slots: np.ndarray

    cutoff_weight: float

    @property
    def n_clusters(self) -> int:
        """Number of supported clusters."""
        return len(self.weights)
