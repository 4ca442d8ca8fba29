"""Base class for metrics acquisition strategies."""

from abc import ABC, abstractmethod
import logging

from ..services.normalizer import MetricsNormalizer
from ..utils.metrics import DataSource, StandardizedMetrics


class MetricsSource(ABC):
    """Abstract base class for live and simulated metrics sources."""

    source = DataSource.LIVE

    def __init__(self, normalizer: MetricsNormalizer, logger: logging.Logger):
        """
        Initialize base source.

        Args:
            normalizer: Normalizer producing the canonical record
            logger: Logger instance
        """
        self.normalizer = normalizer
        self.logger = logger.getChild(self.__class__.__name__)

    @abstractmethod
    async def acquire(self) -> StandardizedMetrics:
        """
        Produce one metrics record.

        Returns:
            StandardizedMetrics: Normalized record for this cycle

        Raises:
            TelemetryError: When the source cannot produce a record
                (translated into an outcome by the SourceController)
        """
        pass
