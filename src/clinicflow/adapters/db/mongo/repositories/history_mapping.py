"""Conversions for embedded status history."""

from typing import List

from clinicflow.domain.entities.history import StatusChange

from ..models.history_m import StatusChangeMongo


def history_to_mongo(history: List[StatusChange]) -> List[StatusChangeMongo]:
    return [
        StatusChangeMongo(
            from_status=h.from_status,
            to_status=h.to_status,
            actor_id=h.actor_id,
            at=h.at,
            reason=h.reason,
        )
        for h in history
    ]


def history_to_domain(history: List[StatusChangeMongo]) -> List[StatusChange]:
    return [
        StatusChange(
            from_status=h.from_status,
            to_status=h.to_status,
            actor_id=h.actor_id,
            at=h.at,
            reason=h.reason,
        )
        for h in history
    ]
