import logging

import numpy as np

from .utils import ClusterSummary, IterationHistory

logger = logging.getLogger(__name__)


def summarize_clusters(
    history: IterationHistory,
    burn_in: int,
    cutoff_weight: float = 0.05,
) -> ClusterSummary:
    """
    Posterior mean weight and VAF of every cluster slot.

    Slots whose mean weight over the retained iterations exceeds
    ``cutoff_weight`` are reported as supported clusters. Supported and
    full lists are both ordered by mean VAF, ties kept in slot order.

    Parameters
    ----------
    history : IterationHistory
        Completed chain.
    burn_in : int
        Number of leading iterations to discard.
    cutoff_weight : float
        Minimum mean weight for a slot to be called a cluster.

    Returns
    -------
    ClusterSummary
    """
    rows = history.retained(burn_in)
    mean_wts = history.weights()[rows].mean(axis=0)
    mean_freq = history.cluster_vaf[rows].mean(axis=0)

    order = np.argsort(mean_freq, kind="stable")
    supported = order[mean_wts[order] > cutoff_weight]

    logger.info(
        "%d clusters above weight %.3g: %s",
        len(supported),
        cutoff_weight,
        ", ".join(f"{f:.3f}" for f in mean_freq[supported]),
    )

    return ClusterSummary(
        weights=mean_wts[supported],
        frequencies=mean_freq[supported],
        slots=supported,
        all_weights=mean_wts[order],
        all_frequencies=mean_freq[order],
        all_slots=order,
        cutoff_weight=cutoff_weight,
    )
