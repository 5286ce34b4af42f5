"""
Feature level method: the score is the level of the selected normalized features.

Useful as a transparent rule ("CPU above 80% of capacity over the window") and
as a stand-in model when no trained baseline is available.
"""

from typing import Any

import numpy as np

from ..models import FeatureVector
from .base import ScoringMethod

REDUCERS = {"max": np.max, "mean": np.mean}


class FeatureLevelMethod(ScoringMethod):
    """Reduces the selected features to one score with max or mean"""

    def __init__(self, config: dict):
        super().__init__(config)
        self.reduce = config.get("reduce", "max")
        if self.reduce not in REDUCERS:
            raise ValueError(f"Unknown reducer '{self.reduce}', expected one of {list(REDUCERS)}")

    @property
    def name(self) -> str:
        return "feature_level"

    def score(self, vector: FeatureVector) -> float:
        return float(np.clip(REDUCERS[self.reduce](self.select(vector)), 0.0, 1.0))

    def get_config(self) -> dict[str, Any]:
        return {"features": self.features, "reduce": self.reduce}
