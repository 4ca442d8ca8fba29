"""Live metrics acquisition from the backend."""

import logging
from typing import List

from ..services.api_client import TelemetryApiClient, TimeBound
from ..services.normalizer import MetricsNormalizer
from ..utils.metrics import DataSource, StandardizedMetrics
from .base import MetricsSource


class LiveSource(MetricsSource):
    """Fetch, decode and normalize the backend's current metrics."""

    source = DataSource.LIVE

    def __init__(
        self,
        api: TelemetryApiClient,
        normalizer: MetricsNormalizer,
        logger: logging.Logger
    ):
        super().__init__(normalizer, logger)
        self.api = api

    async def acquire(self) -> StandardizedMetrics:
        payload = await self.api.fetch_current_metrics()
        metrics = self.normalizer.normalize(payload)
        self.logger.debug(
            f"Live metrics: cpu={metrics.cpu_usage:.1f}% mem={metrics.memory_usage:.1f}% "
            f"disk={metrics.disk_usage:.1f}%"
        )
        return metrics

    async def history(self, start_time: TimeBound = None, end_time: TimeBound = None) -> List[StandardizedMetrics]:
        """
        Fetch stored records for a time window, oldest first.

        Records are normalized with their own MetricsNormalizer so bandwidth
        comes from consecutive history samples and the live cycle's counter
        baseline is left alone.
        """
        records = await self.api.fetch_metrics_history(start_time, end_time)
        normalizer = MetricsNormalizer(self.logger)
        return [normalizer.normalize(record) for record in records]
