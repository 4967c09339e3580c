############################################################
#
# bloghut - Community Blogging Platform
#
# badges.py: Achievement badge awarding
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Badge awarder.

Badges come from a fixed catalog (Newcomer, First Post, Prolific Writer).
Awarding is idempotent: each (user, badge) pair is granted at most once.
"""

from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db import crud
from backend.app.db.models import (
    FIRST_POST_BADGE_ID,
    NEWCOMER_BADGE_ID,
    PROLIFIC_WRITER_BADGE_ID,
    PROLIFIC_WRITER_POST_COUNT,
)
from backend.app.logging_config import get_logger

logger = get_logger(__name__)


async def award_registration_badge(db: AsyncSession, user_id: int) -> bool:
    awarded = await crud.award_badge(db, user_id, NEWCOMER_BADGE_ID)
    if awarded:
        logger.info("badge_awarded", user_id=user_id, badge_id=NEWCOMER_BADGE_ID)
    return awarded


async def award_post_milestones(db: AsyncSession, user_id: int) -> List[int]:
    """Grant post-count badges after a new post; returns the badge ids granted."""
    post_count = await crud.count_user_posts(db, user_id)
    candidates = []
    if post_count == 1:
        candidates.append(FIRST_POST_BADGE_ID)
    if post_count >= PROLIFIC_WRITER_POST_COUNT:
        candidates.append(PROLIFIC_WRITER_BADGE_ID)

    granted = []
    for badge_id in candidates:
        if await crud.award_badge(db, user_id, badge_id):
            logger.info("badge_awarded", user_id=user_id, badge_id=badge_id, post_count=post_count)
            granted.append(badge_id)
    return granted
