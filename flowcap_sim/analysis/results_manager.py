#!/usr/bin/env python3
"""
Results Management

Audit storage for simulation runs and reallocation decisions: numbered run
directories holding results.json, metadata.json, summary.md and charts/, plus
a JSONL reallocation log per account.
"""

import json
import math
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.models import SimulationResult
from ..utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RunMetadata:
    """Metadata for a single simulation run"""
    run_id: str
    product_type: str
    timestamp: str
    parameters: Dict[str, Any]
    execution_time: float
    seed: Optional[int] = None
    data_source: str = "unknown"
    status: str = "completed"


class ResultsManager:
    """Versioned JSON persistence for simulation results"""

    def __init__(self, base_results_dir: str = "results"):
        self.base_results_dir = Path(base_results_dir)
        self._lock = threading.Lock()
        self.base_results_dir.mkdir(parents=True, exist_ok=True)

    def create_run_directory(self, product_type: str) -> Path:
        """Create results/<product_type>/run_NNN_<timestamp>/ with a charts folder"""
        with self._lock:
            product_dir = self.base_results_dir / product_type
            product_dir.mkdir(exist_ok=True)

            run_number = self._get_next_run_number(product_dir)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            run_dir = product_dir / f"run_{run_number:03d}_{timestamp}"
            run_dir.mkdir(exist_ok=True)
            (run_dir / "charts").mkdir(exist_ok=True)

            return run_dir

    def _get_next_run_number(self, product_dir: Path) -> int:
        run_numbers = []
        for run_dir in product_dir.iterdir():
            if not run_dir.is_dir() or not run_dir.name.startswith("run_"):
                continue
            parts = run_dir.name.split("_")
            if len(parts) >= 2 and parts[1].isdigit():
                run_numbers.append(int(parts[1]))
        return max(run_numbers) + 1 if run_numbers else 1

    def save_results(
        self,
        run_dir: Path,
        result: SimulationResult,
        metadata: RunMetadata,
        context: Dict[str, Any] = None,
        include_scenarios: bool = False
    ) -> Path:
        """
        Write results.json and metadata.json for one run

        Args:
            run_dir: Directory created by create_run_directory
            result: Aggregated simulation result
            metadata: Run metadata
            context: Extra inputs worth auditing (market conditions, config)
            include_scenarios: Also persist every scenario
        """
        payload = {
            "product_type": metadata.product_type,
            "result": result.to_dict(include_scenarios=include_scenarios),
        }
        if context:
            payload["context"] = context

        results_file = run_dir / "results.json"
        with open(results_file, "w") as f:
            json.dump(self._make_serializable(payload), f, indent=2)

        with open(run_dir / "metadata.json", "w") as f:
            json.dump(self._make_serializable(asdict(metadata)), f, indent=2)

        logger.info("results_saved", path=str(results_file), run_id=metadata.run_id)
        return results_file

    def save_summary_report(self, run_dir: Path, result: SimulationResult, metadata: RunMetadata) -> Path:
        summary_file = run_dir / "summary.md"
        with open(summary_file, "w") as f:
            f.write(self._generate_markdown_summary(result, metadata))
        return summary_file

    def _generate_markdown_summary(self, result: SimulationResult, metadata: RunMetadata) -> str:
        lines = ["# Simulation Run Summary\n", "## Run Information"]
        lines.append(f"- **Product**: {metadata.product_type}")
        lines.append(f"- **Timestamp**: {metadata.timestamp}")
        lines.append(f"- **Execution Time**: {metadata.execution_time:.2f}s")
        lines.append(f"- **Seed**: {metadata.seed}")
        lines.append(f"- **Data Source**: {metadata.data_source}")
        lines.append("")

        lines.append("## Outcome Distribution")
        lines.append(f"- **Initial Value**: ${result.initial_value:,.2f}")
        lines.append(f"- **Mean Final Value**: ${result.mean:,.2f}")
        lines.append(f"- **Median**: ${result.median:,.2f}")
        lines.append(f"- **P5 / P95**: ${result.percentile_5:,.2f} / ${result.percentile_95:,.2f}")
        lines.append(f"- **Probability of Loss**: {result.probability_of_loss:.2%}")
        lines.append(f"- **Value at Risk (5%)**: ${result.value_at_risk_5:,.2f}")
        lines.append(f"- **Sharpe Ratio**: {result.sharpe_ratio:.3f}")
        lines.append(f"- **Simulations**: {result.num_simulations}")
        lines.append("")

        if result.extra_metrics:
            lines.append("## Model Metrics")
            for key, value in result.extra_metrics.items():
                lines.append(f"- **{key.replace('_', ' ').title()}**: {value:.4f}")
            lines.append("")

        lines.append("## Generated Charts")
        lines.append("- Outcome Distribution: `charts/outcome_distribution.png`")
        return "\n".join(lines)

    def append_reallocation_log(
        self,
        account_id: str,
        source: Optional[str],
        target: str,
        apy_gain: float,
        tx_hash: Optional[str] = None
    ) -> Path:
        """Append one JSONL record per executed reallocation"""
        log_file = self.base_results_dir / f"reallocation-log-{account_id}.jsonl"
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "account_id": account_id,
            "from": source,
            "to": target,
            "apy_gain": apy_gain,
            "tx_hash": tx_hash,
        }
        with self._lock:
            with open(log_file, "a") as f:
                f.write(json.dumps(self._make_serializable(entry)) + "\n")
        return log_file

    def list_runs(self, product_type: str) -> List[Dict[str, Any]]:
        product_dir = self.base_results_dir / product_type
        if not product_dir.exists():
            return []

        runs = []
        for run_dir in product_dir.iterdir():
            if not run_dir.is_dir() or not run_dir.name.startswith("run_"):
                continue
            entry = {"run_dir": run_dir.name, "path": str(run_dir)}
            metadata = self.load_metadata(run_dir)
            if metadata is not None:
                entry.update(asdict(metadata))
            runs.append(entry)

        runs.sort(key=lambda r: r["run_dir"])
        return runs

    def load_results(self, run_path: Path) -> Optional[Dict[str, Any]]:
        results_file = Path(run_path) / "results.json"
        if not results_file.exists():
            return None
        try:
            with open(results_file, "r") as f:
                return json.load(f)
        except json.JSONDecodeError:
            logger.warning("results_file_corrupt", path=str(results_file))
            return None

    def load_metadata(self, run_path: Path) -> Optional[RunMetadata]:
        metadata_file = Path(run_path) / "metadata.json"
        if not metadata_file.exists():
            return None
        try:
            with open(metadata_file, "r") as f:
                return RunMetadata(**json.load(f))
        except (json.JSONDecodeError, TypeError):
            logger.warning("metadata_file_corrupt", path=str(metadata_file))
            return None

    def _make_serializable(self, obj: Any) -> Any:
        """Convert to strict JSON: no NaN/Infinity, enums by value, datetimes as ISO"""
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, dict):
            return {
                str(k.value) if isinstance(k, Enum) else str(k): self._make_serializable(v)
                for k, v in obj.items()
            }
        if isinstance(obj, (list, tuple, set, frozenset)):
            return [self._make_serializable(item) for item in obj]
        if hasattr(obj, "tolist"):
            return self._make_serializable(obj.tolist())
        if isinstance(obj, float):
            return obj if math.isfinite(obj) else None
        if obj is None or isinstance(obj, (bool, int, str)):
            return obj
        return str(obj)
