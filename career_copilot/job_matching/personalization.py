"""
Per-user behavior tracking and the personalization boost.

The tracker keeps, per user, which jobs were applied to, viewed, saved or
rejected, plus the companies and job types the user engaged with. The boost
nudges a match score up or down by at most 20 points.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from career_copilot.common.error_handling import InvalidInputError
from career_copilot.common.logger import get_logger
from career_copilot.job_matching.models import Job

MAX_TRACKED_PER_LIST = 1000
MAX_BOOST = 20

PREFERRED_COMPANY_BOOST = 15
PREFERRED_TYPE_BOOST = 10
REJECTION_PENALTY = 5
APPLICATION_BOOST = 5


class UserAction(str, Enum):
    APPLY = "apply"
    VIEW = "view"
    SAVE = "save"
    REJECT = "reject"


@dataclass
class UserBehavior:
    """Everything remembered about one user."""

    applied_jobs: List[str] = field(default_factory=list)
    viewed_jobs: List[str] = field(default_factory=list)
    saved_jobs: List[str] = field(default_factory=list)
    rejected_jobs: List[str] = field(default_factory=list)
    preferred_companies: List[str] = field(default_factory=list)
    preferred_job_types: List[str] = field(default_factory=list)
    average_view_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applied_jobs": list(self.applied_jobs),
            "viewed_jobs": list(self.viewed_jobs),
            "saved_jobs": list(self.saved_jobs),
            "rejected_jobs": list(self.rejected_jobs),
            "preferred_companies": list(self.preferred_companies),
            "preferred_job_types": list(self.preferred_job_types),
            "average_view_time": self.average_view_time,
        }


def _append_unique(values: List[str], value: str) -> None:
    if value and value not in values:
        values.append(value)
    if len(values) > MAX_TRACKED_PER_LIST:
        del values[: len(values) - MAX_TRACKED_PER_LIST]


class UserBehaviorTracker:
    """In-memory behavior store. One instance per service."""

    def __init__(self):
        self._behavior: Dict[str, UserBehavior] = {}
        self._logger = get_logger(__name__, component="personalization")

    def track(
        self,
        user_id: str,
        action: str,
        job_id: str,
        view_time: Optional[float] = None,
        job: Optional[Job] = None,
    ) -> UserBehavior:
        """
        Record one user action on a job.

        Applying to or saving a job also records its company and job type as
        preferences when `job` is given.

        Raises:
            InvalidInputError: Unknown action or missing user id
        """
        if not user_id:
            raise InvalidInputError("user_id is required to track behavior")
        try:
            user_action = UserAction(action)
        except ValueError:
            raise InvalidInputError(
                f"Unknown action '{action}'. Expected one of: "
                f"{', '.join(a.value for a in UserAction)}"
            ) from None

        behavior = self._behavior.setdefault(user_id, UserBehavior())
        job_id = str(job_id)

        if user_action == UserAction.APPLY:
            _append_unique(behavior.applied_jobs, job_id)
        elif user_action == UserAction.VIEW:
            _append_unique(behavior.viewed_jobs, job_id)
            if view_time:
                behavior.average_view_time = (behavior.average_view_time + view_time) / 2
        elif user_action == UserAction.SAVE:
            _append_unique(behavior.saved_jobs, job_id)
        elif user_action == UserAction.REJECT:
            _append_unique(behavior.rejected_jobs, job_id)

        if job is not None and user_action in (UserAction.APPLY, UserAction.SAVE):
            _append_unique(behavior.preferred_companies, job.company)
            _append_unique(behavior.preferred_job_types, job.type)

        self._logger.debug(f"Tracked {user_action.value} on job {job_id} for user {user_id}")
        return behavior

    def get(self, user_id: str) -> Optional[UserBehavior]:
        return self._behavior.get(user_id)

    def clear(self, user_id: Optional[str] = None) -> None:
        if user_id:
            self._behavior.pop(user_id, None)
        else:
            self._behavior.clear()

    def boost(self, user_id: str, job: Job) -> int:
        """
        Score adjustment in [-20, 20] for this user and job.

        +15 preferred company, +10 preferred job type, -5 if the user has
        rejected anything, +5 if the user has applied anywhere.
        """
        behavior = self._behavior.get(user_id)
        if behavior is None:
            return 0

        boost = 0
        if job.company and job.company in behavior.preferred_companies:
            boost += PREFERRED_COMPANY_BOOST
        job_type = job.type.lower()
        if any(t.lower() in job_type for t in behavior.preferred_job_types if t):
            boost += PREFERRED_TYPE_BOOST
        if behavior.rejected_jobs:
            boost -= REJECTION_PENALTY
        if behavior.applied_jobs:
            boost += APPLICATION_BOOST

        return max(-MAX_BOOST, min(MAX_BOOST, boost))
