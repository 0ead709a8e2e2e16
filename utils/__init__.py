"""Utility modules for cross-cutting concerns."""

from utils.timezone import (
    now_utc,
    to_utc,
    to_local,
    parse_iso,
    combine_local,
    start_of_day,
    start_of_week,
    minutes_between,
)
from utils.staff_context import (
    RLSScope,
    get_current_scope,
    set_current_scope,
    clear_current_scope,
    staff_scope,
)
