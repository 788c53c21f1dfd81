from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ats.core.errors import NotFound
from ats.metrics import observe_activity_write_failure
from ats.users.models import User, UserActivity
from ats.users.schemas import ActivityEntry, ActivityActionType, UserActivityRead


logger = logging.getLogger("ats.activity")

MAX_RECENT_ACTIONS = 50


class ActivityService:
    """Keeps the most recent actions per user, newest first."""

    def record(
        self,
        session: Session,
        user_id: uuid.UUID | None,
        *,
        action_type: ActivityActionType,
        entity_type: str,
        entity_id: uuid.UUID | str,
        entity_name: str,
    ) -> None:
        """Prepend one action for ``user_id``. Failures are logged and never reach the caller."""
        if user_id is None:
            return
        entry = ActivityEntry(
            action_type=action_type,
            entity_type=entity_type,
            entity_id=str(entity_id),
            entity_name=entity_name,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        try:
            if session.get(User, user_id) is None:
                logger.warning("activity.unknown_user", extra={"user_id": str(user_id), "entity_type": entity_type})
                return
            activity = session.scalar(select(UserActivity).where(UserActivity.user_id == user_id))
            if activity is None:
                activity = UserActivity(user_id=user_id, last_actions=[])
                session.add(activity)
            activity.last_actions = [entry.model_dump(), *(activity.last_actions or [])][:MAX_RECENT_ACTIONS]
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            observe_activity_write_failure()
            logger.error(
                "activity.update_failed",
                extra={"user_id": str(user_id), "entity_type": entity_type, "entity_id": str(entity_id), "error": str(exc)},
            )

    def get(self, session: Session, user_id: uuid.UUID) -> UserActivityRead:
        activity = session.scalar(select(UserActivity).where(UserActivity.user_id == user_id))
        if activity is None:
            raise NotFound("User activity not found")
        return UserActivityRead.model_validate(activity)


activity_service = ActivityService()


def resolve_actor(session: Session, subject: uuid.UUID | None, fallback: uuid.UUID | None) -> uuid.UUID | None:
    """The authenticated subject when it names a known user, otherwise ``fallback``."""
    if subject is not None and session.get(User, subject) is not None:
        return subject
    return fallback
