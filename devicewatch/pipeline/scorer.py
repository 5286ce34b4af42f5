"""
Anomaly scoring decision policy.

The numeric score comes from an injected scoring function (the model). The
scorer owns what happens around it:

- threshold: a window is anomalous when raw_score >= cutoff
- hysteresis: once anomalous, only raw_score < cutoff - margin clears it
- confirmation: k consecutive anomalous windows are needed before the signal
  is CONFIRMED, shorter streaks are only SUSPECTED
- fail-open: a failing or slow scoring function raises ScoringUnavailable and
  resets the decision state, the window then counts as non-anomalous
"""

import math
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

import structlog

from .config import CategoryConfig, PipelineConfig
from .errors import ScoringUnavailable
from .models import AnomalyScore, AnomalySignal, FeatureVector

logger = structlog.get_logger(__name__)

ScoringFunction = Callable[[FeatureVector], float]


class AnomalyScorer:
    """Turns raw model scores of one category into a graded anomaly signal"""

    def __init__(
        self,
        scoring_fn: ScoringFunction,
        category: str = "device",
        cutoff: float = 0.8,
        hysteresis_margin: float = 0.1,
        consecutive_windows: int = 2,
        timeout_seconds: float | None = None,
    ):
        if not 0.0 < cutoff <= 1.0:
            raise ValueError(f"cutoff must be in (0, 1], got {cutoff}")
        if not 0.0 <= hysteresis_margin < cutoff:
            raise ValueError("hysteresis_margin must be in [0, cutoff)")
        if consecutive_windows < 1:
            raise ValueError("consecutive_windows must be at least 1")

        self.scoring_fn = scoring_fn
        self.category = category
        self.cutoff = cutoff
        self.hysteresis_margin = hysteresis_margin
        self.consecutive_windows = consecutive_windows
        self.timeout_seconds = timeout_seconds

        self._executor: ThreadPoolExecutor | None = None

        self._anomalous = False
        self._streak = 0
        self.available = True

        self.stats = {"scored": 0, "anomalous": 0, "confirmed": 0, "unavailable": 0}

    @classmethod
    def for_category(
        cls, category: CategoryConfig, config: PipelineConfig, scoring_fn: ScoringFunction
    ) -> "AnomalyScorer":
        """Build a scorer with the category's overrides over the pipeline defaults"""
        return cls(
            scoring_fn=scoring_fn,
            category=category.name,
            cutoff=category.cutoff if category.cutoff is not None else config.cutoff,
            hysteresis_margin=(
                category.hysteresis_margin
                if category.hysteresis_margin is not None
                else config.hysteresis_margin
            ),
            consecutive_windows=category.consecutive_windows or config.consecutive_windows,
            timeout_seconds=config.scoring_timeout_seconds,
        )

    @property
    def is_anomalous(self) -> bool:
        return self._anomalous

    def score(self, vector: FeatureVector) -> AnomalyScore:
        """Score one window

        Raises:
            ScoringUnavailable: If the scoring function fails, times out or
                returns a value outside [0, 1]
        """
        raw = self._invoke(vector)

        if not self.available:
            self.available = True
            logger.info("Scoring recovered", category=self.category)

        if self._anomalous:
            self._anomalous = raw >= self.cutoff - self.hysteresis_margin
        else:
            self._anomalous = raw >= self.cutoff

        self._streak = self._streak + 1 if self._anomalous else 0

        if not self._anomalous:
            signal = AnomalySignal.CLEAR
        elif self._streak >= self.consecutive_windows:
            signal = AnomalySignal.CONFIRMED
        else:
            signal = AnomalySignal.SUSPECTED

        self.stats["scored"] += 1
        if self._anomalous:
            self.stats["anomalous"] += 1
        if signal is AnomalySignal.CONFIRMED:
            self.stats["confirmed"] += 1

        return AnomalyScore(
            raw_score=raw,
            window_ref=vector.window_ref,
            is_anomalous=self._anomalous,
            category=self.category,
            signal=signal,
            consecutive=self._streak,
            degraded=vector.degraded,
        )

    def fail_open(self, vector: FeatureVector) -> AnomalyScore:
        """Non-anomalous score used for a window that could not be scored"""
        return AnomalyScore(
            raw_score=0.0,
            window_ref=vector.window_ref,
            is_anomalous=False,
            category=self.category,
            signal=AnomalySignal.CLEAR,
            consecutive=0,
            degraded=vector.degraded,
            available=False,
        )

    def _invoke(self, vector: FeatureVector) -> float:
        try:
            if self.timeout_seconds:
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=1, thread_name_prefix=f"scorer-{self.category}"
                    )
                future = self._executor.submit(self.scoring_fn, vector)
                raw = future.result(timeout=self.timeout_seconds)
            else:
                raw = self.scoring_fn(vector)

            raw = float(raw)
            if not math.isfinite(raw) or not 0.0 <= raw <= 1.0:
                raise ValueError(f"score {raw} is outside [0, 1]")
            return raw

        except FutureTimeoutError as e:
            # The hung call keeps its worker, the next window gets a fresh one
            self.close()
            self._mark_unavailable(f"timed out after {self.timeout_seconds}s")
            raise ScoringUnavailable(
                f"Scoring for '{self.category}' timed out after {self.timeout_seconds}s"
            ) from e

        except Exception as e:
            self._mark_unavailable(str(e))
            raise ScoringUnavailable(f"Scoring for '{self.category}' failed: {e}") from e

    def _mark_unavailable(self, reason: str) -> None:
        if self.available:
            logger.warning("Scoring unavailable, failing open", category=self.category, error=reason)
        self.available = False
        self._anomalous = False
        self._streak = 0
        self.stats["unavailable"] += 1

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
