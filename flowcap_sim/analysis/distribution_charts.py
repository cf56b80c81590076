#!/usr/bin/env python3
"""
Outcome Distribution Charts

Histogram of simulated final values with mean / P5 / P95 markers, and a bar
chart comparing harvest cadences.
"""

from pathlib import Path
from typing import Dict, List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from ..core.models import SimulationResult
from ..utils.logging import get_logger

logger = get_logger(__name__)


class DistributionChartGenerator:
    """Renders Monte Carlo outcome charts to PNG"""

    def __init__(self):
        self._setup_styling()

    def _setup_styling(self):
        plt.style.use("default")
        sns.set_palette("husl")
        plt.rcParams.update({
            "figure.figsize": (12, 8),
            "font.size": 11,
            "axes.titlesize": 14,
            "axes.labelsize": 12,
            "legend.fontsize": 10,
        })

    def outcome_distribution(self, result: SimulationResult, charts_dir: Path, title: str = "") -> Path:
        if not result.scenarios:
            raise ValueError("Result carries no scenarios to plot")
        charts_dir = Path(charts_dir)
        charts_dir.mkdir(parents=True, exist_ok=True)

        frame = pd.DataFrame({"final_value": [s.final_value for s in result.scenarios]})
        fig, ax = plt.subplots(figsize=(12, 7))
        sns.histplot(data=frame, x="final_value", bins=50, kde=True, ax=ax)

        ax.axvline(result.initial_value, color="black", linestyle=":", label=f"Initial ${result.initial_value:,.0f}")
        ax.axvline(result.mean, color="tab:blue", linestyle="-", label=f"Mean ${result.mean:,.2f}")
        ax.axvline(result.percentile_5, color="tab:red", linestyle="--", label=f"P5 ${result.percentile_5:,.2f}")
        ax.axvline(result.percentile_95, color="tab:green", linestyle="--", label=f"P95 ${result.percentile_95:,.2f}")

        ax.set_title(title or f"Outcome Distribution ({result.num_simulations} simulations)")
        ax.set_xlabel("Final Value ($)")
        ax.set_ylabel("Scenarios")
        ax.legend()
        ax.grid(True, alpha=0.3)

        output = charts_dir / "outcome_distribution.png"
        fig.tight_layout()
        fig.savefig(output, dpi=300, bbox_inches="tight")
        plt.close(fig)
        logger.info("chart_saved", path=str(output))
        return output

    def harvest_comparison(self, values_by_cadence: Dict[float, float], charts_dir: Path, unit: str = "days") -> Optional[Path]:
        """Bar chart of mean return (or final value) per harvest cadence"""
        if not values_by_cadence:
            return None
        charts_dir = Path(charts_dir)
        charts_dir.mkdir(parents=True, exist_ok=True)

        labels: List[str] = [f"{cadence:g} {unit}" for cadence in values_by_cadence]
        fig, ax = plt.subplots(figsize=(10, 6))
        sns.barplot(x=labels, y=list(values_by_cadence.values()), ax=ax)
        ax.set_title("Harvest Frequency Comparison")
        ax.set_xlabel("Harvest every")
        ax.set_ylabel("Expected outcome ($)")
        ax.grid(True, axis="y", alpha=0.3)

        output = charts_dir / "harvest_comparison.png"
        fig.tight_layout()
        fig.savefig(output, dpi=300, bbox_inches="tight")
        plt.close(fig)
        return output
