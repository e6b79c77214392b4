"""Operator identity: a fixed allow-list of user ids."""

import logging
from typing import Iterable

logger = logging.getLogger(__name__)


def parse_operator_ids(raw: str | None) -> frozenset[int]:
    """Parses a comma-separated id list such as "111,222". Bad entries are skipped."""
    ids = set()
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.add(int(part))
        except ValueError:
            logger.warning("Ignoring non-numeric operator id %r", part)
    return frozenset(ids)


class OperatorDirectory:

    def __init__(self, operator_ids: Iterable[int]):
        self._operator_ids = frozenset(operator_ids)

    def is_privileged(self, user_id: int | None) -> bool:
        return user_id is not None and user_id in self._operator_ids
