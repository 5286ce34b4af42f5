"""
Baseline Z-Score scoring method.

Compares each selected feature to a pre-trained per-device baseline (mean and
standard deviation of the feature under normal operation) and scores the
largest upward deviation.

Workflow:
1. Components are loaded from the model cache (trained elsewhere) or fall back
   to conservative population priors
2. Inference: z = (value - mean) / std per feature, score = max(z) / z_scale
   clipped to [0, 1]. With the default z_scale of 5, z=4 maps to 0.8
"""

from dataclasses import dataclass
from typing import Any

import numpy as np
import structlog

from ..models import FeatureVector
from .base import ModelComponents, ScoringMethod

logger = structlog.get_logger(__name__)

# Population priors used until a device-specific baseline is loaded
DEFAULT_BASELINE = {
    "cpu_mean": (0.25, 0.10),
    "cpu_peak": (0.40, 0.15),
    "mem_mean": (0.50, 0.10),
    "mem_peak": (0.55, 0.10),
    "battery_level": (0.60, 0.25),
    "battery_drain": (0.10, 0.05),
    "charging_ratio": (0.30, 0.40),
    "thermal_mean": (0.25, 0.08),
}


@dataclass
class BaselineZScoreConfig:
    """Configuration for the Baseline Z-Score method"""

    z_scale: float = 5.0  # z-score mapped to a score of 1.0
    min_std: float = 0.01  # Floor for near-constant features


class BaselineZScoreMethod(ScoringMethod):
    """Z-score of the current window against a pre-trained baseline"""

    def __init__(self, config: dict):
        super().__init__(config)
        self.config = BaselineZScoreConfig(
            **{k: v for k, v in config.items() if k in ("z_scale", "min_std")}
        )
        self.baseline_source = "defaults"
        self._set_baseline({name: DEFAULT_BASELINE[name] for name in self.features})

        logger.debug(
            "Baseline Z-Score method initialized",
            features=self.features,
            z_scale=self.config.z_scale,
        )

    @property
    def name(self) -> str:
        return "baseline_zscore"

    def get_config(self) -> dict[str, Any]:
        return {
            "features": self.features,
            "z_scale": self.config.z_scale,
            "min_std": self.config.min_std,
            "baseline_source": self.baseline_source,
        }

    def load_components(self, model: ModelComponents) -> None:
        """Use a pre-trained baseline

        Args:
            model: Components with ``means`` and ``stds`` dicts keyed by feature name

        Raises:
            ValueError: If the components do not cover the configured features
        """
        means = model.components.get("means", {})
        stds = model.components.get("stds", {})
        missing = [name for name in self.features if name not in means or name not in stds]
        if missing:
            raise ValueError(f"Baseline does not cover features: {missing}")

        self._set_baseline({name: (means[name], stds[name]) for name in self.features})
        self.baseline_source = f"{model.device_id}@{model.trained_at}"

        logger.info(
            "Baseline loaded",
            device_id=model.device_id,
            category=model.category,
            trained_at=model.trained_at,
        )

    def _set_baseline(self, baseline: dict[str, tuple[float, float]]) -> None:
        self._means = np.array([baseline[name][0] for name in self.features], dtype=float)
        self._stds = np.maximum(
            np.array([baseline[name][1] for name in self.features], dtype=float),
            self.config.min_std,
        )

    def z_scores(self, vector: FeatureVector) -> np.ndarray:
        return (np.asarray(self.select(vector), dtype=float) - self._means) / self._stds

    def score(self, vector: FeatureVector) -> float:
        max_z = float(np.max(self.z_scores(vector)))
        return float(np.clip(max_z / self.config.z_scale, 0.0, 1.0))
