"""
Base abstract interface for scoring methods.

A scoring method is the pre-trained model seen by the pipeline: a pure
function from a FeatureVector to a score in [0, 1]. Methods never train; the
components they need are loaded from the model cache or taken from defaults.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any

from ..models import FEATURE_NAMES, FeatureVector


@dataclass
class ModelComponents:
    """Pre-trained model components (serializable for caching)"""

    method_name: str
    device_id: str
    category: str
    components: dict[str, Any]
    trained_at: str
    metadata: dict[str, Any]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ModelComponents":
        """Create from dictionary"""
        return cls(**data)


class ScoringMethod(ABC):
    """Abstract base class for all scoring methods

    Each method must implement:
    1. score() - map a FeatureVector to a float in [0, 1], without side effects
    2. get_config() - expose its configuration
    """

    def __init__(self, config: dict):
        features = list(config.get("features") or FEATURE_NAMES)
        unknown = set(features) - set(FEATURE_NAMES)
        if unknown:
            raise ValueError(f"Unknown features: {sorted(unknown)}")
        self.features = features
        self._indices = [FEATURE_NAMES.index(name) for name in features]

    @abstractmethod
    def score(self, vector: FeatureVector) -> float:
        """Score a feature vector

        Args:
            vector: Normalized features of one window

        Returns:
            Anomaly score in [0, 1], higher is more anomalous
        """
        pass

    @abstractmethod
    def get_config(self) -> dict[str, Any]:
        """Get the current configuration of this method"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of the scoring method"""
        pass

    def select(self, vector: FeatureVector) -> list[float]:
        """Values of the configured features, in configuration order"""
        return [vector.values[i] for i in self._indices]

    def __call__(self, vector: FeatureVector) -> float:
        return self.score(vector)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(config={self.get_config()})"
