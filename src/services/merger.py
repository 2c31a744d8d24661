"""Merging, cursor truncation and classification of discovered candidates."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from models.job import MergeResult
from models.video import VideoCandidate, is_short

logger = logging.getLogger(__name__)


def deduplicate(view_results: Sequence[Sequence[VideoCandidate]]) -> List[VideoCandidate]:
    """Concatenate view results, keeping the first instance of each id."""
    unique: Dict[str, VideoCandidate] = {}
    for view_result in view_results:
        for candidate in view_result:
            if candidate.id not in unique:
                unique[candidate.id] = candidate
    return list(unique.values())


def _recency(candidate: VideoCandidate) -> Tuple[str, int]:
    """Sort key: upload day, then upload time; unknown times rank last within the day."""
    return candidate.upload_date, candidate.timestamp if candidate.timestamp is not None else -1


def truncate_at_cursor(ordered: List[VideoCandidate], cursor: Optional[str]) -> List[VideoCandidate]:
    """Keep the candidates strictly newer than the cursor.

    An absent or unknown cursor keeps everything.
    """
    if cursor is None:
        return ordered
    for position, candidate in enumerate(ordered):
        if candidate.id == cursor:
            return ordered[:position]
    return ordered


def merge(
    view_results: Sequence[Sequence[VideoCandidate]],
    after_date: str,
    cursor: Optional[str] = None,
) -> MergeResult:
    """Determine which candidates are new and classify them.

    Args:
        view_results: Candidates per listing view, in view-priority order
        after_date: YYYYMMDD floor; older candidates are dropped
        cursor: Id of the newest candidate already considered, if any

    Returns:
        MergeResult with shorts and normals newest first
    """
    candidates = [c for c in deduplicate(view_results) if c.upload_date >= after_date]

    # Same-day uploads go by timestamp where known; sort() is stable, so the
    # rest keep discovery order
    candidates.sort(key=_recency, reverse=True)

    if not candidates or (cursor is not None and candidates[0].id == cursor):
        return MergeResult()

    new_candidates = truncate_at_cursor(candidates, cursor)
    if not new_candidates:
        return MergeResult()

    result = MergeResult(
        newest_id=new_candidates[0].id,
        newest_upload_date=new_candidates[0].upload_date,
    )
    for candidate in new_candidates:
        if is_short(candidate):
            result.shorts.append(candidate)
        else:
            result.normals.append(candidate)

    logger.debug(
        f"Merged {len(candidates)} candidate(s): {len(result.shorts)} new short(s), "
        f"{len(result.normals)} new normal video(s)"
    )
    return result
