"""Queue type and patch helpers"""
import re
from typing import Dict, Optional

QUEUE_NAME_BY_ID: Dict[int, str] = {
    420: "RANKED_SOLO_5x5",
    440: "RANKED_FLEX",
    400: "NORMAL_DRAFT",
}

RANKED_QUEUE_IDS = (420, 440)

# First 2-3 numeric segments of a game version
PATCH_RE = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+))?")


def parse_patch(patch: Optional[str]) -> Optional[Dict[str, Optional[str]]]:
    """
    Parse a Riot gameVersion loosely.

    "15.18.1"        -> {"major": "15", "minor": "18", "micro": "1"}
    "15.18.531.8881" -> {"major": "15", "minor": "18", "micro": "531"}
    "15.18"          -> {"major": "15", "minor": "18", "micro": None}
    "garbage"        -> None
    """
    if not patch:
        return None
    m = PATCH_RE.match(patch.strip())
    if not m:
        return None
    major, minor, micro = m.groups()
    return {"major": major, "minor": minor, "micro": micro}


def patch_bucket(patch: str) -> str:
    """"15.18.1" -> "15.18". Unparseable versions pass through unchanged."""
    p = parse_patch(patch)
    return f"{p['major']}.{p['minor']}" if p else patch


def queue_name(queue_id: int) -> str:
    return QUEUE_NAME_BY_ID.get(queue_id, f"QUEUE_{queue_id}")
