# FILE: voice_habits/services/telemetry.py
"""
Session telemetry (daily JSONL files)

Events are summaries only: provider switches, speech failures, check-in
and goals outcomes. Transcripts and reflections are never recorded.
Files are named by the local date of the session time zone; timestamps
inside stay UTC.
"""
import json
import logging
from collections import Counter, deque
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from voice_habits.config import get_settings

logger = logging.getLogger(__name__)

EVENT_FILE_PREFIX = "events-"
_TAIL_SIZE = 200

_tail: deque = deque(maxlen=_TAIL_SIZE)
_counts: Counter = Counter()


def resolve_timezone(tz_name: Optional[str]):
    """
    IANA zone for tz_name.

    None means system local time; an unknown name falls back to UTC.
    """
    if not tz_name:
        return None
    try:
        from zoneinfo import ZoneInfo
        return ZoneInfo(tz_name)
    except Exception:
        logger.warning(f"Unknown SESSION_TIMEZONE '{tz_name}', using UTC")
        return timezone.utc


def _events_dir() -> Path:
    path = Path(get_settings().logs_dir) / "telemetry"
    path.mkdir(parents=True, exist_ok=True)
    return path


def _daily_file(moment: datetime) -> Path:
    local_day = moment.astimezone(resolve_timezone(get_settings().session_timezone)).date()
    return _events_dir() / f"{EVENT_FILE_PREFIX}{local_day.isoformat()}.jsonl"


def record_event(event: str, **fields: Any) -> None:
    """Append one event; telemetry problems are logged, never raised"""
    if not get_settings().telemetry_enabled:
        return

    moment = datetime.now(timezone.utc)
    entry = {"ts": moment.isoformat(), "event": event}
    entry.update(fields)

    _tail.append(entry)
    _counts[event] += 1

    try:
        line = json.dumps(entry, ensure_ascii=False, default=str)
        with open(_daily_file(moment), "a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError as e:
        logger.warning(f"Telemetry event '{event}' not written: {e}")


def prune_old_files() -> int:
    """Remove daily files older than TELEMETRY_RETENTION_DAYS; returns how many went"""
    keep_days = max(get_settings().telemetry_retention_days, 1)
    oldest_kept = (datetime.now(timezone.utc) - timedelta(days=keep_days)).date()
    removed = 0
    try:
        for path in _events_dir().glob(f"{EVENT_FILE_PREFIX}*.jsonl"):
            stamp = path.stem[len(EVENT_FILE_PREFIX):]
            try:
                day = datetime.strptime(stamp, "%Y-%m-%d").date()
            except ValueError:
                continue
            if day < oldest_kept:
                path.unlink(missing_ok=True)
                removed += 1
    except OSError as e:
        logger.debug(f"Telemetry pruning skipped: {e}")
    return removed


def recent_events(limit: int = 10) -> List[Dict[str, Any]]:
    return list(_tail)[-limit:]


def get_telemetry_summary() -> Dict[str, Any]:
    """In-process view of what was recorded (files are not read)"""
    return {
        "enabled": get_settings().telemetry_enabled,
        "total_events_in_memory": len(_tail),
        "counters_in_memory": dict(_counts),
        "recent_events": recent_events(),
    }


def reset_telemetry() -> None:
    _tail.clear()
    _counts.clear()
