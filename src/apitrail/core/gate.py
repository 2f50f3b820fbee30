"""
Dispatch gate: decides whether a request is reported at all.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import structlog

from ..config import Settings

logger = structlog.get_logger(__name__)


class SkipReason(str, Enum):
    MISSING_API_KEY = "missing_api_key"
    IGNORED_ENVIRONMENT = "ignored_environment"


@dataclass(frozen=True)
class GateDecision:
    """Outcome of the eligibility check."""
    eligible: bool
    reason: Optional[SkipReason] = None


class DispatchGate:
    """
    Evaluates credentials and environment before a report is built.

    A project id without an api key skips the report. An api key without a
    project id is still reported.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def ignored_environments(self) -> List[str]:
        raw = self.settings.apitrail.ignored_environments
        if not raw:
            return []
        return [env.strip() for env in raw.split(",")]

    def evaluate(self, environment: Optional[str] = None) -> GateDecision:
        reporting = self.settings.apitrail
        if environment is None:
            environment = self.settings.app.env

        if not reporting.api_key and reporting.project_id:
            logger.debug("Report skipped: no api key", project_id=reporting.project_id)
            return GateDecision(eligible=False, reason=SkipReason.MISSING_API_KEY)

        if environment in self.ignored_environments():
            logger.debug("Report skipped: ignored environment", environment=environment)
            return GateDecision(eligible=False, reason=SkipReason.IGNORED_ENVIRONMENT)

        return GateDecision(eligible=True)
