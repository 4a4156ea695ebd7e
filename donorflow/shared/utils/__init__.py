"""Small stateless helpers."""

from donorflow.shared.utils.datetime import (
    ensure_utc,
    isoformat_utc,
    parse_iso_datetime,
    utc_now,
)
from donorflow.shared.utils.generators import generate_cuid, generate_task_id

__all__ = [
    "ensure_utc",
    "generate_cuid",
    "generate_task_id",
    "isoformat_utc",
    "parse_iso_datetime",
    "utc_now",
]
