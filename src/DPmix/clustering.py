"""
End-to-end subclonal clustering: sampling, density estimation and cluster
summary bundled into a single result.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from .density import estimate_density
from .params import DPClusteringSpec
from .sampler import DirichletProcessSampler, ProgressCallback
from .summary import summarize_clusters
from .utils import (
    ClusterSummary,
    DensityEstimate,
    IterationHistory,
    Observations,
)

logger = logging.getLogger(__name__)


@dataclass
class DPResult:
    """
    Everything needed to report or re-plot a clustering run.
    """

    density: DensityEstimate
    weights: np.ndarray = field(repr=False)
    summary: ClusterSummary
    history: IterationHistory = field(repr=False)
    data: Observations = field(repr=False)
    spec: DPClusteringSpec = field(repr=False)

    @property
    def n_clusters(self) -> int:
        return self.summary.n_clusters

    @property
    def cluster_weights(self) -> np.ndarray:
        return self.summary.weights

    @property
    def cluster_frequencies(self) -> np.ndarray:
        return self.summary.frequencies


def dp_clustering(
    alt: np.ndarray,
    depth: np.ndarray,
    spec: Optional[DPClusteringSpec] = None,
    progress: Optional[ProgressCallback] = None,
    **overrides,
) -> DPResult:
    """
    Dirichlet process clustering of the VAF distribution of a tumour sample.

    Parameters
    ----------
    alt : np.ndarray
        Number of reads reporting each mutation (must be >= 1).
    depth : np.ndarray
        Total depth at each locus.
    spec : DPClusteringSpec, optional
        Run settings.
    progress : callable, optional
        Per-iteration callback ``progress(iteration, state)``.
    **overrides
        DPClusteringSpec fields replacing those of ``spec``,
        e.g. ``iterations=2000, burn_in=1000``.

    Returns
    -------
    DPResult
        Density, per-iteration weights, cluster summary, chain and data.
    """
    if spec is None:
        spec = DPClusteringSpec(**overrides)
    elif overrides:
        # keep an explicit burn_in unless the new iteration count invalidates it
        new_iterations = overrides.get("iterations", spec.iterations)
        if "burn_in" not in overrides and new_iterations <= spec.burn_in:
            overrides["burn_in"] = None
        spec = dataclasses.replace(spec, **overrides)

    sampler = DirichletProcessSampler(spec)
    history = sampler.run(alt, depth, progress=progress)

    density = estimate_density(
        history,
        burn_in=spec.burn_in,
        bandwidth=spec.bandwidth,
        max_vaf=spec.max_vaf,
        grid_points=spec.grid_points,
    )
    summary = summarize_clusters(
        history, burn_in=spec.burn_in, cutoff_weight=spec.cutoff_weight
    )

    return DPResult(
        density=density,
        weights=history.weights(),
        summary=summary,
        history=history,
        data=sampler.observations,
        spec=spec,
    )
