"""
Configuration for the background score crawler.

Defaults come from ``constants`` (environment variables); tests and the CLI
build instances with explicit overrides.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List

from loguru import logger

from equity_scorer.src.config import constants


@dataclass
class CrawlerConfig:
    """Tunables for one crawl run."""

    batch_size: int = constants.BATCH_SIZE
    rate_limit_delay: float = constants.RATE_LIMIT_DELAY_SECONDS
    max_retries: int = constants.MAX_RETRIES
    retry_delay: float = constants.RETRY_DELAY_SECONDS
    staleness_hours: float = constants.STALENESS_HOURS
    history_period: str = constants.HISTORY_PERIOD
    deadline_seconds: float = constants.RUN_DEADLINE_SECONDS
    data_source_order: List[str] = field(
        default_factory=lambda: list(constants.DATA_SOURCE_ORDER)
    )

    @classmethod
    def from_env(cls) -> "CrawlerConfig":
        """Build and validate a config from the environment defaults."""
        config = cls()
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration values."""
        errors = []

        if self.batch_size < 1:
            errors.append(f"BATCH_SIZE must be at least 1, got {self.batch_size}")
        if self.batch_size > 50:
            errors.append(f"BATCH_SIZE seems unreasonably high: {self.batch_size}")
        if self.rate_limit_delay < 0:
            errors.append(f"RATE_LIMIT_DELAY_SECONDS cannot be negative, got {self.rate_limit_delay}")
        if self.max_retries < 1:
            errors.append(f"MAX_RETRIES must be at least 1, got {self.max_retries}")
        if self.retry_delay < 0:
            errors.append(f"RETRY_DELAY_SECONDS cannot be negative, got {self.retry_delay}")
        if self.staleness_hours <= 0:
            errors.append(f"STALENESS_HOURS must be positive, got {self.staleness_hours}")
        if self.deadline_seconds < 0:
            errors.append(f"RUN_DEADLINE_SECONDS cannot be negative, got {self.deadline_seconds}")
        if not self.data_source_order:
            errors.append("DATA_SOURCE_ORDER cannot be empty")

        if errors:
            for error in errors:
                logger.error(f"Configuration validation error: {error}")
            raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

        logger.debug(
            f"Crawler configuration validated: batch_size={self.batch_size}, "
            f"rate_limit_delay={self.rate_limit_delay}s, max_retries={self.max_retries}, "
            f"retry_delay={self.retry_delay}s, staleness_hours={self.staleness_hours}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
