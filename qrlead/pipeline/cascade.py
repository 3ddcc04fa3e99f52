from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from ..errors import DeadlineExceeded
from ..schemas import ContactFields
from .retry import Deadline

logger = logging.getLogger(__name__)


class Strategy(Protocol):
    """One step of a cheap-to-expensive extraction cascade."""

    name: str
    uses_network: bool

    def applies(self, payload: str) -> bool:
        ...

    def attempt(self, payload: str, deadline: Deadline) -> Optional[ContactFields]:
        ...


@dataclass(frozen=True)
class CascadeOutcome:
    method: Optional[str]
    fields: ContactFields


def is_useful(fields: Optional[ContactFields], min_fields: int = 1) -> bool:
    return fields is not None and fields.filled_count() >= min_fields


def run_cascade(
    strategies: Sequence[Strategy],
    payload: str,
    deadline: Deadline,
    *,
    min_fields: int = 1,
) -> CascadeOutcome:
    """Try ``strategies`` in order until one clears the usefulness bar.

    Strategy exceptions are logged and the next strategy runs. An expired
    deadline skips every remaining network strategy. With nothing useful,
    the outcome carries an empty field set and no method.
    """
    for strategy in strategies:
        if not strategy.applies(payload):
            continue
        try:
            if getattr(strategy, "uses_network", True):
                deadline.check()
            fields = strategy.attempt(payload, deadline)
        except DeadlineExceeded:
            logger.warning("deadline reached before %s completed", strategy.name)
            continue
        except Exception as e:
            logger.warning("strategy %s failed: %s", strategy.name, e)
            continue
        if is_useful(fields, min_fields):
            return CascadeOutcome(method=strategy.name, fields=fields)
        logger.debug("strategy %s produced nothing usable", strategy.name)
    return CascadeOutcome(method=None, fields=ContactFields())
