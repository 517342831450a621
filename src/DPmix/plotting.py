from __future__ import annotations

import logging
from pathlib import Path

import matplotlib.pyplot as plt

from .clustering import DPResult

logger = logging.getLogger(__name__)


def plot_vaf_density(
    result: DPResult,
    out_png: str | Path,
    *,
    bins: int = 100,
    title: str = "Posterior VAF density",
) -> Path:
    """Histogram of observed VAFs with the posterior density and its 95% band."""
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    dens = result.density

    fig, ax = plt.subplots()
    ax.hist(result.data.vaf, bins=bins, density=True, color="0.68")
    ax.fill_between(
        dens.x,
        dens.lower,
        dens.upper,
        color="lightsteelblue",
        edgecolor="slategray",
        linewidth=0.2,
        alpha=0.7,
    )
    ax.plot(dens.x, dens.mean, color="slategray", linewidth=1.0)
    for freq in result.cluster_frequencies:
        ax.axvline(freq, color="slategray", linestyle=":", linewidth=0.8)
    ax.set_xlabel("VAF")
    ax.set_ylabel("Density")
    ax.set_title(title)
    fig.tight_layout()
    fig.savefig(out_png, dpi=160)
    plt.close(fig)

    logger.info("Density plot written: %s", out_png)
    return out_png
