from __future__ import annotations
import logging
from datetime import timedelta
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import AuthSession, utcnow

logger = logging.getLogger(__name__)


def purge_stale_sessions(db: Session, older_than: timedelta = timedelta(days=7)) -> int:
	threshold = utcnow() - older_than
	# Sessions idle past the threshold can no longer authenticate anyone
	res = db.execute(delete(AuthSession).where(AuthSession.last_activity_at < threshold))
	removed = res.rowcount or 0
	db.commit()
	if removed:
		logger.info("Purged %d stale auth sessions", removed)
	return removed
