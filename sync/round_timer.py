"""
Round countdown and progress computed from ledger epoch timestamps
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from blockchain.normalizer import to_int
from config.config import DEFAULT_VOTING_WINDOW

LOADING = "Loading..."
EXPIRED = "Expired"


@dataclass
class RoundTimerSnapshot:
    time_remaining_seconds: int
    time_remaining_formatted: str
    is_expired: bool
    current_round_number: int
    total_blocks: int
    voting_window_hours: int
    round_progress_percentage: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def format_time_remaining(seconds: int) -> str:
    """Hours and minutes, minutes and seconds, or seconds alone"""
    if seconds <= 0:
        return EXPIRED
    seconds = int(seconds)
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def compute_snapshot(
    now: float,
    round_start_time: Optional[int] = None,
    round_end_time: Optional[int] = None,
    current_round: int = 1,
    total_blocks: int = 0,
    voting_window_seconds: int = DEFAULT_VOTING_WINDOW,
) -> RoundTimerSnapshot:
    """Pure countdown calculation; a missing end time is unknown, never expired"""
    now = int(now)
    has_end = bool(round_end_time) and round_end_time > 0

    remaining = max(0, int(round_end_time) - now) if has_end else 0
    is_expired = has_end and remaining <= 0

    progress = 0.0
    if has_end and round_start_time and round_start_time > 0 and round_end_time > round_start_time:
        elapsed = now - round_start_time
        progress = min(100.0, max(0.0, elapsed / (round_end_time - round_start_time) * 100))

    if voting_window_seconds and voting_window_seconds > 0:
        voting_window_hours = int(voting_window_seconds) // 3600
    else:
        voting_window_hours = 24

    return RoundTimerSnapshot(
        time_remaining_seconds=remaining,
        time_remaining_formatted=format_time_remaining(remaining) if has_end else LOADING,
        is_expired=is_expired,
        current_round_number=current_round or 1,
        total_blocks=total_blocks or 0,
        voting_window_hours=voting_window_hours,
        round_progress_percentage=progress,
    )


def _field(record: Any, *names: str):
    """First present field among ``names`` in a tagged or flat record"""
    if not isinstance(record, dict):
        return None
    inner = record.get("value")
    sources = [inner, record] if isinstance(inner, dict) else [record]
    for source in sources:
        for name in names:
            if source.get(name) is not None:
                return source[name]
    return None


def extract_round_timing(
    round_data: Any,
    story_data: Any,
    current_round: Optional[int] = None,
) -> Dict[str, int]:
    """Pull timer inputs out of ``get-round`` and ``get-story`` results"""
    if current_round is None:
        current_round = to_int(_field(story_data, "current-round", "current_round"), 1)
    return {
        "round_start_time": to_int(_field(round_data, "start-time", "start_time")),
        "round_end_time": to_int(_field(round_data, "end-time", "end_time")),
        "current_round": int(current_round),
        "total_blocks": to_int(_field(story_data, "total-blocks", "total_blocks")),
        "voting_window_seconds": to_int(
            _field(story_data, "voting-window", "voting_window"), DEFAULT_VOTING_WINDOW
        ),
    }
