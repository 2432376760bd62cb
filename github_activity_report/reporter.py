"""Prose report generation from a user's collected activity."""

import logging
from datetime import datetime

from .aggregator import ActivityAggregator
from .llm import LLMClient
from .models import ActivityRecord
from .report import format_activity_data

logger = logging.getLogger(__name__)


class Reporter:
    """Fetches a user's activity and has the LLM write it up."""

    def __init__(self, aggregator: ActivityAggregator, llm_client: LLMClient):
        self.aggregator = aggregator
        self.llm_client = llm_client

    def generate_report(self, username: str, since: datetime, until: datetime) -> str:
        """Fetch activity for ``username`` and return the generated report."""
        record = self.aggregator.fetch(username, since, until)
        return self.write_report(record)

    def write_report(self, record: ActivityRecord) -> str:
        """Return the generated report for an already collected record."""
        stats = record.statistics()
        logger.info(
            f"{record.username}: commits={stats.total_commits} prs={stats.total_prs} "
            f"issues={stats.total_issues} reviews={stats.total_reviews}"
        )

        activity_data = format_activity_data(record)
        logger.debug(f"{record.username}: generating report from {len(activity_data)} characters of activity data")
        report = self.llm_client.generate_report(activity_data, record.username)
        logger.info(f"{record.username}: report generated ({len(report)} characters)")
        return report
