from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

import matplotlib.pyplot as plt

from .filters import VcfFilter

logger = logging.getLogger(__name__)


def plot_filter_counts(
    *,
    filter_counts: Dict[str, int],
    n_pass: int,
    out_png: str | Path,
    title: str = "Somatic indel filters",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    labels = ["PASS"] + [f.name for f in VcfFilter]
    values = [int(n_pass)] + [int(filter_counts.get(f.name, 0)) for f in VcfFilter]

    plt.figure()
    plt.bar(labels, values)
    plt.ylabel("Record count")
    plt.title(title)
    plt.xticks(rotation=15, ha="right")
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_af_hist(
    *,
    bin_edges: List[float],
    counts: List[int],
    out_png: str | Path,
    title: str = "Tumor indel allele fraction",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    widths = [bin_edges[i + 1] - bin_edges[i] for i in range(len(counts))]
    centers = [bin_edges[i] + widths[i] / 2.0 for i in range(len(counts))]

    plt.figure()
    plt.bar(centers, counts, width=widths, align="center")
    plt.xlabel("Tier1 tumor AF")
    plt.ylabel("Record count")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
