"""
Gibbs sampler for a truncated Dirichlet process mixture of binomials.

Each mutation i contributes y_i alt reads out of N_i, with
    y_i | z_i = c ~ Binomial(N_i, θ_c)
    z_i ~ Categorical(π),  π = stick-breaking(V),  V_c ~ Beta(1, α)
    α ~ Gamma(a, b)

The chain updates, in order, the cluster assignments z, the stick
fractions V, the cluster VAFs θ and the concentration α. Only the first
C - 1 sticks are sampled; the last one is fixed to 1 so the truncated
weights sum to one.
"""

import logging
from typing import Callable, Optional

import numpy as np
from tqdm import tqdm

from .params import DPClusteringSpec
from .utils import (
    ComputationError,
    IterationHistory,
    Observations,
    SamplerState,
    binomial_loglik,
    log_stick_prior,
    normalize_log_rows,
    prepare_observations,
    sample_categorical,
)

logger = logging.getLogger(__name__)

# Stick fractions drawn as exactly 1.0 are pulled back to keep log(1 - V) finite.
_STICK_CLAMP = 0.9999
# Cluster VAFs are capped to stay valid binomial probabilities.
_VAF_CAP = 0.999

ProgressCallback = Callable[[int, SamplerState], None]


class DirichletProcessSampler:
    """
    Stick-breaking Gibbs sampler over per-mutation VAFs.

    Parameters
    ----------
    spec : DPClusteringSpec, optional
        Sampler settings. Defaults are used when omitted.

    Attributes
    ----------
    history : IterationHistory
        Full chain, available after :meth:`run`.
    observations : Observations
        Validated input of the last run.
    """

    def __init__(self, spec: Optional[DPClusteringSpec] = None):
        self.spec = spec if spec is not None else DPClusteringSpec()
        self.history: Optional[IterationHistory] = None
        self.observations: Optional[Observations] = None

    def run(
        self,
        alt: np.ndarray,
        depth: np.ndarray,
        progress: Optional[ProgressCallback] = None,
    ) -> IterationHistory:
        """
        Run the chain for ``spec.iterations`` iterations.

        Parameters
        ----------
        alt : np.ndarray
            Alt read counts, all >= 1.
        depth : np.ndarray
            Total depth, all > 0.
        progress : callable, optional
            Called as ``progress(iteration, state)`` after every iteration.
            When omitted and ``spec.verbose`` is set, a tqdm bar is shown.

        Returns
        -------
        IterationHistory
            Frozen history of all iterations.
        """
        obs = prepare_observations(alt, depth)
        self.observations = obs
        spec = self.spec
        rng = np.random.default_rng(spec.random_state)

        logger.info(
            "Gibbs sampling %d mutations: %d iterations, %d clusters max",
            obs.n_mutations,
            spec.iterations,
            spec.max_clusters,
        )

        history = IterationHistory(spec.iterations, spec.max_clusters, obs.n_mutations)
        state = self._initial_state(obs, rng)
        history.append(state)

        steps = range(2, spec.iterations + 1)
        bar = None
        if progress is None and spec.verbose:
            bar = tqdm(total=spec.iterations, initial=1, desc="Gibbs sampling", unit="it")

        try:
            for m in steps:
                state = self.step(state, obs, rng, iteration=m)
                history.append(state)
                if progress is not None:
                    progress(m, state)
                elif bar is not None:
                    bar.update(1)
        finally:
            if bar is not None:
                bar.close()

        self.history = history.freeze()
        logger.info(
            "Sampling done: final alpha=%.4g, %d occupied clusters",
            state.concentration,
            len(state.occupied),
        )
        return self.history

    def _initial_state(self, obs: Observations, rng: np.random.Generator) -> SamplerState:
        """Iteration 1, drawn from the priors."""
        C = self.spec.max_clusters
        cluster_vaf = rng.uniform(0.0, obs.vaf.max(), C)
        stick_fractions = np.full(C, 0.5)
        stick_fractions[-1] = 1.0
        return SamplerState(
            iteration=1,
            stick_fractions=stick_fractions,
            cluster_vaf=cluster_vaf,
            concentration=1.0,
            assignment=np.zeros(obs.n_mutations, dtype=np.int64),
        )

    def step(
        self,
        prev: SamplerState,
        obs: Observations,
        rng: np.random.Generator,
        iteration: Optional[int] = None,
    ) -> SamplerState:
        """
        One full Gibbs sweep producing iteration ``m`` from iteration ``m - 1``.

        ``prev`` is never modified.
        """
        m = prev.iteration + 1 if iteration is None else iteration

        probs = self.assignment_probabilities(prev, obs, iteration=m)
        assignment = sample_categorical(probs, rng)

        stick_fractions = self._update_sticks(assignment, prev.concentration, rng)
        cluster_vaf = self._update_cluster_vaf(prev.cluster_vaf, assignment, obs, rng)
        concentration = self._update_concentration(stick_fractions, rng)

        if not np.all(np.isfinite(cluster_vaf)) or not np.isfinite(concentration):
            raise ComputationError("non-finite parameter draw", iteration=m)

        return SamplerState(
            iteration=m,
            stick_fractions=stick_fractions,
            cluster_vaf=cluster_vaf,
            concentration=concentration,
            assignment=assignment,
        )

    def assignment_probabilities(
        self,
        state: SamplerState,
        obs: Observations,
        iteration: Optional[int] = None,
    ) -> np.ndarray:
        """
        Conditional cluster probabilities of every mutation, shape (n, C).

        Every row is computed from the same read-only snapshot ``state``.
        """
        log_p = log_stick_prior(state.stick_fractions)[None, :] + binomial_loglik(
            obs.alt, obs.depth, state.cluster_vaf
        )
        return normalize_log_rows(log_p, iteration=iteration)

    def _update_sticks(
        self,
        assignment: np.ndarray,
        alpha: float,
        rng: np.random.Generator,
    ) -> np.ndarray:
        C = self.spec.max_clusters
        counts = np.bincount(assignment, minlength=C)
        # mutations assigned to a cluster beyond h
        tail = counts[::-1].cumsum()[::-1]
        above = np.append(tail[1:], 0)

        v = np.ones(C)
        v[:-1] = rng.beta(1.0 + counts[:-1], alpha + above[:-1])
        v[:-1][v[:-1] == 1.0] = _STICK_CLAMP
        return v

    def _update_cluster_vaf(
        self,
        prev_vaf: np.ndarray,
        assignment: np.ndarray,
        obs: Observations,
        rng: np.random.Generator,
    ) -> np.ndarray:
        C = self.spec.max_clusters
        theta = prev_vaf.copy()
        alt_sum = np.bincount(assignment, weights=obs.alt, minlength=C)
        depth_sum = np.bincount(assignment, weights=obs.depth, minlength=C)

        occupied = np.unique(assignment)
        draws = rng.gamma(alt_sum[occupied], 1.0 / depth_sum[occupied])
        theta[occupied] = np.minimum(draws, _VAF_CAP)
        return theta

    def _update_concentration(self, stick_fractions: np.ndarray, rng: np.random.Generator) -> float:
        spec = self.spec
        shape = spec.max_clusters + spec.hyper_a - 1.0
        rate = spec.hyper_b - np.sum(np.log1p(-stick_fractions[:-1]))
        return float(rng.gamma(shape, 1.0 / rate))

    def __repr__(self) -> str:
        status = "sampled" if self.history is not None else "not run"
        return (
            f"DirichletProcessSampler(iterations={self.spec.iterations}, "
            f"max_clusters={self.spec.max_clusters}, status={status})"
        )


# =============================================================================
# Convenience Functions
# =============================================================================


def run_gibbs_sampler(
    alt: np.ndarray,
    depth: np.ndarray,
    spec: Optional[DPClusteringSpec] = None,
    progress: Optional[ProgressCallback] = None,
) -> IterationHistory:
    """
    Convenience function to run the Gibbs sampler.

    Parameters
    ----------
    alt : np.ndarray
        Alt read counts.
    depth : np.ndarray
        Total depth.
    spec : DPClusteringSpec, optional
        Sampler settings.
    progress : callable, optional
        Per-iteration callback, see :meth:`DirichletProcessSampler.run`.

    Returns
    -------
    IterationHistory
        Frozen chain history.
    """
    return DirichletProcessSampler(spec).run(alt, depth, progress=progress)
