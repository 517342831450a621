"""
Dirichlet Process Mixture Clustering of Tumour Variant Allele Frequencies.

A truncated stick-breaking Dirichlet process mixture of binomials is fit to
per-mutation alt read counts and depths with a Gibbs sampler. The chain is
summarised as a posterior VAF density with a 95% credible band and as a list
of supported clusters (weight, frequency).
"""

from .utils import (
    # Numeric primitives
    binomial_loglik,
    log_stick_prior,
    normalize_log_rows,
    sample_categorical,
    stick_breaking_weights,
    prepare_observations,
    # Data classes
    Observations,
    SamplerState,
    IterationHistory,
    DensityEstimate,
    ClusterSummary,
    # Errors
    InputError,
    ConfigurationError,
    ComputationError,
)

from .params import DPClusteringSpec

from .sampler import (
    DirichletProcessSampler,
    run_gibbs_sampler,
)

from .density import estimate_density, kernel_density
from .summary import summarize_clusters

from .clustering import (
    DPResult,
    dp_clustering,
)

__all__ = [
    # Classes
    "DirichletProcessSampler",
    # Convenience functions
    "dp_clustering",
    "run_gibbs_sampler",
    "estimate_density",
    "summarize_clusters",
    # Data classes
    "DPClusteringSpec",
    "Observations",
    "SamplerState",
    "IterationHistory",
    "DensityEstimate",
    "ClusterSummary",
    "DPResult",
    # Errors
    "InputError",
    "ConfigurationError",
    "ComputationError",
    # Utilities
    "binomial_loglik",
    "log_stick_prior",
    "normalize_log_rows",
    "sample_categorical",
    "stick_breaking_weights",
    "prepare_observations",
    "kernel_density",
]

__version__ = "0.1.0"
