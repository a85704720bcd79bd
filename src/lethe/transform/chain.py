"""Back-reference (``parentUuid``) chain repair after record deletion."""

from __future__ import annotations

import structlog

from lethe.models.record import Record

logger = structlog.get_logger("lethe.transform.chain")


def repair_parent_chain(records: list[Record]) -> list[Record]:
    """
    Re-link records whose parent was deleted.

    Every non-null ``parent_uuid`` that does not match the ``uuid`` of a
    retained record is reassigned to the ``uuid`` of the nearest preceding
    record that has one, or to None if there is none. Records whose parent
    still exists are returned as the same objects.

    After this pass every non-null ``parent_uuid`` resolves within the output.
    """
    retained_ids = {r.uuid for r in records if r.uuid is not None}
    repaired: list[Record] = []
    last_uuid: str | None = None
    relinked = 0

    for record in records:
        parent = record.parent_uuid
        if parent is not None and parent not in retained_ids:
            record = record.model_copy(update={"parent_uuid": last_uuid})
            relinked += 1
        repaired.append(record)
        if record.uuid is not None:
            last_uuid = record.uuid

    if relinked:
        logger.debug("parent_chain_repaired", relinked=relinked, total=len(records))
    return repaired
