"""
Read side of the baseline store.

Baselines are trained offline and written to Redis as JSON, one key per
device, category and method. The pipeline only reads them: all categories of
a device are fetched in a single MGET when the scorers are built.
"""

import json

import redis
import structlog

from .config import PipelineConfig
from .methods.base import ModelComponents

logger = structlog.get_logger(__name__)

KEY_PREFIX = "devicewatch:model"


def baseline_key(device_id: str, category: str, method_name: str) -> str:
    return f"{KEY_PREFIX}:{method_name}:{device_id}:{category}"


class RedisModelCache:
    """Loads pre-trained baselines for one device from Redis"""

    def __init__(self, config: PipelineConfig):
        self.device_id = config.device_id
        try:
            self.redis = redis.Redis(
                host=config.redis_host,
                port=config.redis_port,
                db=config.redis_db,
                password=config.redis_password,
                decode_responses=True,
            )
            self.redis.ping()
            logger.info("Baseline store connected", host=config.redis_host, device_id=self.device_id)
        except Exception as e:
            logger.error("Failed to connect to baseline store", host=config.redis_host, error=str(e))
            raise

    def load_baselines(self, wanted: dict[str, str]) -> dict[str, ModelComponents]:
        """Fetch the baselines of several categories in one round trip

        Args:
            wanted: Method name per category

        Returns:
            Components per category. Categories whose key is absent, unreadable
            or holds a baseline of another device, category or method are left out.
        """
        if not wanted:
            return {}

        categories = list(wanted)
        keys = [baseline_key(self.device_id, c, wanted[c]) for c in categories]
        try:
            raw_values = self.redis.mget(keys)
        except redis.RedisError as e:
            logger.error("Failed to read baselines", device_id=self.device_id, error=str(e))
            return {}

        baselines = {}
        for category, key, raw in zip(categories, keys, raw_values):
            if raw is None:
                continue
            try:
                model = ModelComponents.from_dict(json.loads(raw))
            except (TypeError, ValueError) as e:
                logger.error("Unreadable baseline", key=key, error=str(e))
                continue

            expected = (self.device_id, category, wanted[category])
            if (model.device_id, model.category, model.method_name) != expected:
                logger.warning(
                    "Baseline does not match its key",
                    key=key,
                    device_id=model.device_id,
                    category=model.category,
                    method=model.method_name,
                )
                continue
            baselines[category] = model

        logger.debug("Baselines fetched", requested=len(keys), found=len(baselines))
        return baselines
