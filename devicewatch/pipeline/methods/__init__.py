"""
Scoring methods registry and factory.
"""

from .base import ModelComponents, ScoringMethod
from .baseline_zscore import BaselineZScoreMethod
from .feature_level import FeatureLevelMethod

# Registry of available methods
METHOD_REGISTRY = {
    "feature_level": FeatureLevelMethod,
    "baseline_zscore": BaselineZScoreMethod,
}


def get_method(method_name: str, config: dict) -> ScoringMethod:
    """Factory to create a scoring method

    Args:
        method_name: Name of the method (e.g., 'baseline_zscore')
        config: Configuration dict for the method

    Returns:
        Instance of the scoring method

    Raises:
        ValueError: If method_name is not registered
    """
    if method_name not in METHOD_REGISTRY:
        available = ", ".join(METHOD_REGISTRY.keys())
        raise ValueError(f"Unknown method '{method_name}'. Available methods: {available}")

    method_class = METHOD_REGISTRY[method_name]
    return method_class(config)


def list_methods() -> list[str]:
    """List all available scoring methods"""
    return list(METHOD_REGISTRY.keys())


__all__ = [
    "BaselineZScoreMethod",
    "FeatureLevelMethod",
    "ModelComponents",
    "ScoringMethod",
    "get_method",
    "list_methods",
]
