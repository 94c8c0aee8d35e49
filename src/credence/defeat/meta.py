"""Meta-defeat resolution (Pollock-style reinstatement).

A defeater is active when its own status is ``active`` and no currently
active defeater in its ``defeated_by`` list defeats it. Deciding whether a
meta-defeater is active needs the same check one level up, so the walk is
depth-first over ``defeated_by``.

Cycles are broken by the IDs already on the current path: reaching one of
them again counts as "not active" for that branch only. The outcomes that
follow are fixed and tested:

- self-defeat: the defeater stays active
- 2-cycle: both defeaters are inactive
- 3-cycle: all three are active

Those polarities come from traversal order, not from a reasoned semantics.
``credence.defeat.grounded`` offers an order-independent alternative.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace

from credence.defeat.types import DefeaterStatus, ExtendedDefeater

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Frame:
    defeater: ExtendedDefeater
    path: frozenset[str]
    index: int = 0


def _index(all_defeaters: Sequence[ExtendedDefeater]) -> dict[str, ExtendedDefeater]:
    by_id: dict[str, ExtendedDefeater] = {}
    for d in all_defeaters:
        by_id.setdefault(d.id, d)
    return by_id


def _settle(defeater: ExtendedDefeater, path: frozenset[str]) -> bool | None:
    """Answer without descending, or None when meta-defeaters must be checked."""
    if defeater.status is not DefeaterStatus.ACTIVE:
        return False
    if not defeater.defeated_by:
        return True
    if defeater.id in path:
        return False
    return None


def _is_active(defeater: ExtendedDefeater, by_id: dict[str, ExtendedDefeater]) -> bool:
    settled = _settle(defeater, frozenset())
    if settled is not None:
        return settled

    stack = [_Frame(defeater, frozenset({defeater.id}))]
    result: bool | None = None
    while stack:
        frame = stack[-1]
        if result is True:
            # An active meta-defeater defeats this frame's defeater.
            stack.pop()
            result = False
            continue

        result = None
        descended = False
        defeated = False
        metas = frame.defeater.defeated_by or ()
        while frame.index < len(metas):
            meta_id = metas[frame.index]
            frame.index += 1
            meta = by_id.get(meta_id)
            if meta is None:
                logger.debug("Ignoring unknown meta-defeater %s on %s", meta_id, frame.defeater.id)
                continue
            settled = _settle(meta, frame.path)
            if settled is None:
                stack.append(_Frame(meta, frame.path | {meta.id}))
                descended = True
                break
            if settled:
                defeated = True
                break
        if descended:
            continue
        stack.pop()
        result = not defeated

    return bool(result)


def is_defeater_active(
    defeater: ExtendedDefeater,
    all_defeaters: Sequence[ExtendedDefeater],
) -> bool:
    """Whether ``defeater`` is in force given every known defeater.

    Missing ``defeated_by`` references are ignored. Uses an explicit stack,
    so long meta-defeat chains do not grow the call stack.
    """
    return _is_active(defeater, _index(all_defeaters))


def get_effectively_active_defeaters(
    all_defeaters: Sequence[ExtendedDefeater],
) -> list[ExtendedDefeater]:
    """The defeaters that are active after meta-defeat."""
    by_id = _index(all_defeaters)
    return [d for d in all_defeaters if _is_active(d, by_id)]


def add_meta_defeater(target: ExtendedDefeater, meta_defeater_id: str) -> ExtendedDefeater:
    """Record that ``meta_defeater_id`` defeats ``target``.

    Returns ``target`` itself when the link already exists.
    """
    existing = target.defeated_by or ()
    if meta_defeater_id in existing:
        return target
    return replace(target, defeated_by=(*existing, meta_defeater_id))


def remove_meta_defeater(target: ExtendedDefeater, meta_defeater_id: str) -> ExtendedDefeater:
    """Drop a meta-defeat link; ``defeated_by`` becomes None when emptied."""
    if not target.defeated_by:
        return target
    remaining = tuple(i for i in target.defeated_by if i != meta_defeater_id)
    return replace(target, defeated_by=remaining or None)
