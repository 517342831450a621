from dataclasses import dataclass
from typing import Optional

from .utils import ConfigurationError


_DEFAULT_ITERATIONS = 20000
_DEFAULT_MAX_CLUSTERS = 30
_DEFAULT_BANDWIDTH = 0.01
_DEFAULT_MAX_VAF = 0.7
_DEFAULT_CUTOFF_WEIGHT = 0.05
_DEFAULT_HYPER_A = 0.01
_DEFAULT_HYPER_B = 0.01
_DEFAULT_GRID_POINTS = 512
_DEFAULT_RANDOM_STATE = 42


@dataclass
class DPClusteringSpec:
    """
    Complete specification of a truncated Dirichlet process clustering run.
    Owns *all* sampler settings, post-processing settings and defaults.

    ``burn_in`` is the number of leading iterations discarded before
    posterior summaries are computed. When left as ``None`` it defaults to
    a quarter of ``iterations``.
    """

    # Sampler
    iterations: int = _DEFAULT_ITERATIONS
    max_clusters: int = _DEFAULT_MAX_CLUSTERS
    burn_in: Optional[int] = None

    # Gamma prior on the concentration parameter (shape, rate)
    hyper_a: float = _DEFAULT_HYPER_A
    hyper_b: float = _DEFAULT_HYPER_B

    # Post-processing
    bandwidth: float = _DEFAULT_BANDWIDTH
    max_vaf: float = _DEFAULT_MAX_VAF
    cutoff_weight: float = _DEFAULT_CUTOFF_WEIGHT
    grid_points: int = _DEFAULT_GRID_POINTS

    # Runtime
    verbose: bool = True
    random_state: Optional[int] = _DEFAULT_RANDOM_STATE

    def __post_init__(self):
        if self.burn_in is None:
            self.burn_in = self.iterations // 4
        self.iterations = int(self.iterations)
        self.max_clusters = int(self.max_clusters)
        self.burn_in = int(self.burn_in)
        self.grid_points = int(self.grid_points)
        self.hyper_a = float(self.hyper_a)
        self.hyper_b = float(self.hyper_b)
        self.bandwidth = float(self.bandwidth)
        self.max_vaf = float(self.max_vaf)
        self.cutoff_weight = float(self.cutoff_weight)

        if self.iterations < 1:
            raise ConfigurationError("iterations must be a positive integer")
        if self.max_clusters < 2:
            raise ConfigurationError("max_clusters must be at least 2")
        if not 0 <= self.burn_in < self.iterations:
            raise ConfigurationError("burn_in must satisfy 0 <= burn_in < iterations")
        if not self.bandwidth > 0:
            raise ConfigurationError("bandwidth must be positive")
        if not self.max_vaf > 0:
            raise ConfigurationError("max_vaf must be positive")
        if not 0 <= self.cutoff_weight < 1:
            raise ConfigurationError("cutoff_weight must lie in [0, 1)")
        if not (self.hyper_a > 0 and self.hyper_b > 0):
            raise ConfigurationError("hyper_a and hyper_b must be positive")
        if self.grid_points < 2:
            raise ConfigurationError("grid_points must be at least 2")

    @property
    def n_retained(self) -> int:
        """Number of post burn-in iterations used for summaries."""
        return self.iterations - self.burn_in
