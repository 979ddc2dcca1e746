"""
Conversion of normalized contract records into application records.

Inputs are the flat mappings produced by ``blockchain.normalizer.normalize``
(contract field names, integers possibly as decimal strings).
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from blockchain.normalizer import normalize, to_bool, to_int
from config.config import (
    DEFAULT_CATEGORY,
    DEFAULT_COVER_ART,
    DEFAULT_DESCRIPTION,
    DEFAULT_VOTING_WINDOW,
    MAX_BLOCKS_PER_STORY,
    TITLE_MAX_LENGTH,
)
from models.records import (
    STATUS_ACTIVE,
    STATUS_SEALED,
    RoundInfo,
    StoryChain,
    UserProfile,
    VoiceBlock,
)

IPFS_CID_PATTERN = re.compile(r"^(Qm[a-zA-Z0-9]{44}|baf[a-zA-Z0-9]{52,})$")


def shorten_principal(principal: Any) -> str:
    if not principal or not isinstance(principal, str):
        return "Unknown"
    if len(principal) <= 12:
        return principal
    return f"{principal[:6]}...{principal[-4:]}"


def is_ipfs_cid(value: Any) -> bool:
    return isinstance(value, str) and bool(IPFS_CID_PATTERN.match(value))


def _text(value: Any, default: str = "") -> str:
    value = normalize(value) if isinstance(value, dict) else value
    if value is None or isinstance(value, dict):
        return default
    return str(value)


def convert_story(record: Dict[str, Any], story_id) -> StoryChain:
    """Build a StoryChain summary (no blocks) from a ``get-story`` record"""
    prompt = _text(record.get("prompt"))
    is_sealed = to_bool(record.get("is-sealed"))
    voting_window = to_int(record.get("voting-window"), DEFAULT_VOTING_WINDOW)

    title = f"Story {story_id}"
    description = DEFAULT_DESCRIPTION
    if prompt:
        if len(prompt) > TITLE_MAX_LENGTH:
            title = prompt[:TITLE_MAX_LENGTH - 3] + "..."
        else:
            title = prompt
        description = prompt

    creator = _text(record.get("creator")) or None

    return StoryChain(
        id=str(story_id),
        title=title,
        description=description,
        cover_art=DEFAULT_COVER_ART,
        max_blocks=MAX_BLOCKS_PER_STORY,
        status=STATUS_SEALED if is_sealed else STATUS_ACTIVE,
        category=DEFAULT_CATEGORY,
        bounty_stx=to_int(record.get("bounty-pool")),
        voting_window_hours=voting_window // 3600 if voting_window > 0 else 24,
        creator_username=shorten_principal(creator),
        nft_minted=is_sealed,
        creator=creator,
        created_at=to_int(record.get("created-at")),
        total_blocks=to_int(record.get("total-blocks")),
        current_round=to_int(record.get("current-round"), 1),
        ipfs_hash=prompt if is_ipfs_cid(prompt) else None,
    )


def convert_submission(record: Dict[str, Any], submission_id=None) -> VoiceBlock:
    """Build a VoiceBlock from a ``get-submission`` record.

    The submission id is the map key on the contract, not part of the
    record, so callers pass it separately.
    """
    if submission_id is None:
        submission_id = record.get("submission-id", record.get("id", "0"))
    contributor = _text(record.get("contributor")) or None
    uri = _text(record.get("uri"))
    submitted_at = to_int(record.get("submitted-at"))

    if submitted_at:
        timestamp = datetime.fromtimestamp(submitted_at, tz=timezone.utc).isoformat()
    else:
        timestamp = ""

    return VoiceBlock(
        id=str(_text(submission_id, "0")),
        username=shorten_principal(contributor),
        audio_uri=uri,
        audio_cid=uri if is_ipfs_cid(uri) else None,
        contributor=contributor,
        duration=to_int(record.get("duration")),
        timestamp=timestamp,
        votes=to_int(record.get("vote-count")),
    )


def convert_round(record: Dict[str, Any], story_id, round_num: int) -> RoundInfo:
    winner = record.get("winning-submission")
    if isinstance(winner, dict):
        winner = normalize(winner) or None
    return RoundInfo(
        story_id=str(story_id),
        round_num=int(round_num),
        start_time=to_int(record.get("start-time")),
        end_time=to_int(record.get("end-time")),
        is_finalized=to_bool(record.get("is-finalized")),
        winning_submission=str(winner) if winner not in (None, {}) else None,
        submission_count=to_int(record.get("submission-count")),
    )


def convert_user(record: Dict[str, Any], address: str) -> Optional[UserProfile]:
    username = _text(record.get("username"))
    if not username:
        return None
    return UserProfile(
        address=address,
        username=username,
        registered_at=to_int(record.get("registered-at")),
        total_submissions=to_int(record.get("total-submissions")),
        total_votes=to_int(record.get("total-votes")),
    )
