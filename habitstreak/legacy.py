"""Import of the old single-file selection record.

Two shapes exist in the wild:

    {"version": 2, "dates": {"2025-01-10": {"categories": [1], "tasks": [...], "completed": [...]}}}
    {"categories": [1], "tasks": [...], "completed": [...]}

The second predates per-day tracking and is applied to today.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from fncli import cli

from . import config
from .catalog import get_habits
from .core.errors import NotFoundError, ValidationError
from .core.models import Selection
from .lib import clock
from .lib.dates import date_key, normalize_date_key
from .lib.errors import echo
from .selections import normalize, write_selection

__all__ = ["import_file", "import_selections", "parse_record"]

logger = logging.getLogger(__name__)


def _strings(value: object) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def parse_record(payload: object, today: str) -> dict[str, Selection]:
    """Extract {date_key: Selection} from a legacy payload, dropping unusable records."""
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValidationError(f"legacy record is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ValidationError("legacy record must be a JSON object")

    raw: dict[Any, Any]
    if isinstance(payload.get("dates"), dict):
        raw = payload["dates"]
    elif "tasks" in payload or "categories" in payload:
        raw = {today: payload}
    else:
        return {}

    records: dict[str, Selection] = {}
    for key, value in raw.items():
        target = normalize_date_key(key)
        if target is None:
            logger.warning("skipping legacy record with unreadable date %r", key)
            continue
        if not isinstance(value, dict):
            continue
        tasks, completed = normalize(_strings(value.get("tasks")), _strings(value.get("completed")))
        if not tasks:
            continue
        if target in records:
            logger.warning("legacy record %r replaces an earlier record for %s", key, target)
        records[target] = Selection(tasks=tasks, completed=completed)
    return records


async def import_selections(payload: object, today: str | None = None) -> int:
    """Write each usable legacy date as its own Selection. Returns dates imported."""
    records = parse_record(payload, today or date_key(clock.today()))
    if not records:
        return 0

    known = {h.id for h in await get_habits()}
    imported = 0
    for key in sorted(records):
        record = records[key]
        unknown = [t for t in record.tasks if t not in known]
        if unknown:
            logger.warning("dropping unknown habits on %s: %s", key, ", ".join(unknown))
        tasks = [t for t in record.tasks if t in known]
        if not tasks:
            continue
        completed = [t for t in record.completed if t in known]
        await write_selection(key, Selection(tasks=tasks, completed=completed))
        imported += 1

    logger.info("imported %d legacy date(s)", imported)
    return imported


async def import_file(path: Path, today: str | None = None) -> int | None:
    """One-shot import of a legacy record file. Returns None if it already ran."""
    if config.is_legacy_imported():
        logger.info("legacy import already completed, skipping")
        return None
    imported = await import_selections(path.read_text(), today)
    config.mark_legacy_imported()
    return imported


# ── cli ──────────────────────────────────────────────────────────────────────


@cli("habitstreak", name="import")
def import_cmd(path: str) -> None:
    """Import selections from a legacy JSON record"""
    source = Path(path).expanduser()
    if not source.exists():
        raise NotFoundError(f"no such file: {source}")
    imported = asyncio.run(import_file(source))
    if imported is None:
        echo("already imported")
        return
    echo(f"imported {imported} day(s)")
