"""Schedule lookup with wildcard fallback."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypeVar

from snapshot_keeper.exceptions import ConfigurationError

T = TypeVar("T")

WILDCARD = "*"


def resolve(table: Mapping[str, T], volume_id: str, kind: str = "schedule") -> T:
    """
    Look up the schedule record for a volume.

    An explicit entry for ``volume_id`` wins over the ``*`` entry.

    Args:
        table: Schedule records keyed by volume id or ``*``.
        volume_id: Volume to resolve.
        kind: Table name used in the error context ("creation" or "purge").

    Returns:
        The applicable schedule record.

    Raises:
        ConfigurationError: If neither an explicit nor a wildcard entry exists.
    """
    if volume_id in table:
        return table[volume_id]
    if WILDCARD in table:
        return table[WILDCARD]
    raise ConfigurationError.missing_schedule(volume_id, kind)
