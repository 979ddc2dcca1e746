"""
Application records assembled from normalized ledger reads
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

from config.config import (
    DEFAULT_CATEGORY,
    DEFAULT_COVER_ART,
    DEFAULT_VOTING_WINDOW,
    MAX_BLOCKS_PER_STORY,
)

STATUS_ACTIVE = "active"
STATUS_SEALED = "sealed"


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class VoiceBlock:
    id: str
    username: str
    audio_uri: str = ""
    audio_cid: Optional[str] = None
    contributor: Optional[str] = None
    duration: int = 0
    timestamp: str = ""
    votes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoiceBlock":
        return cls(**_known_fields(cls, data))


@dataclass
class StoryChain:
    """One story and its ordered chain of finalized voice blocks"""
    id: str
    title: str
    description: str = ""
    cover_art: str = DEFAULT_COVER_ART
    blocks: List[VoiceBlock] = field(default_factory=list)
    max_blocks: int = MAX_BLOCKS_PER_STORY
    status: str = STATUS_ACTIVE
    category: str = DEFAULT_CATEGORY
    total_duration: int = 0
    bounty_stx: int = 0
    voting_window_hours: int = DEFAULT_VOTING_WINDOW // 3600
    creator_username: str = "Unknown"
    nft_minted: bool = False
    creator: Optional[str] = None
    created_at: int = 0
    total_blocks: int = 0
    current_round: int = 1
    ipfs_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoryChain":
        values = _known_fields(cls, data)
        values["blocks"] = [
            b if isinstance(b, VoiceBlock) else VoiceBlock.from_dict(b)
            for b in values.get("blocks") or []
        ]
        return cls(**values)


@dataclass
class RoundInfo:
    story_id: str
    round_num: int
    start_time: int = 0
    end_time: int = 0
    is_finalized: bool = False
    winning_submission: Optional[str] = None
    submission_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoundInfo":
        return cls(**_known_fields(cls, data))


@dataclass
class UserProfile:
    address: str
    username: str
    registered_at: int = 0
    total_submissions: int = 0
    total_votes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProfile":
        return cls(**_known_fields(cls, data))
