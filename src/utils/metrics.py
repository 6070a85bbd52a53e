"""
Metrics collection for validator set simulations
"""

import json
import time
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass
class Metric:
    """Single metric measurement"""
    name: str
    value: float
    cycle: int
    timestamp: float
    tags: Dict[str, str] = field(default_factory=dict)


class SimulationMetrics:
    """
    Per-cycle series and counters for a simulation run
    """

    def __init__(self, run_id: str = "valset"):
        self.run_id = run_id
        self.series: Dict[str, List[Metric]] = defaultdict(list)
        self.counters: Dict[str, int] = defaultdict(int)
        self.start_time = time.time()

    def record(self, name: str, value: float, cycle: int, tags: Optional[Dict[str, str]] = None):
        """Record a metric value observed during a cycle"""
        self.series[name].append(Metric(
            name=name,
            value=float(value),
            cycle=cycle,
            timestamp=time.time() - self.start_time,
            tags=tags or {}
        ))

    def increment(self, name: str, value: int = 1):
        self.counters[name] += value

    def get_series(self, name: str) -> List[float]:
        """Get all values for a metric"""
        return [m.value for m in self.series.get(name, [])]

    def get_latest(self, name: str) -> Optional[float]:
        values = self.series.get(name, [])
        return values[-1].value if values else None

    def get_statistics(self, name: str) -> Dict[str, float]:
        """Get statistics for a metric"""
        values = self.get_series(name)
        if not values:
            return {}

        return {
            'count': len(values),
            'mean': float(np.mean(values)),
            'std': float(np.std(values)),
            'min': float(np.min(values)),
            'max': float(np.max(values)),
            'median': float(np.median(values)),
            'p95': float(np.percentile(values, 95))
        }

    def summary(self) -> Dict[str, Any]:
        return {
            'run_id': self.run_id,
            'duration': time.time() - self.start_time,
            'counters': dict(self.counters),
            'series': {name: self.get_statistics(name) for name in self.series}
        }

    def export_json(self, filepath: str):
        """Export metrics to JSON file"""
        export_data = self.summary()
        export_data['values'] = {
            name: [{'cycle': m.cycle, 'value': m.value} for m in metrics]
            for name, metrics in self.series.items()
        }

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, 'w') as f:
            json.dump(export_data, f, indent=2)

    def reset(self):
        """Reset all metrics"""
        self.series.clear()
        self.counters.clear()
        self.start_time = time.time()
