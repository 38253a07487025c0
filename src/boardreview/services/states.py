"""Catalog of workflow states keyed by their symbolic text ids."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from sqlmodel import Session, select

from boardreview.db import StateType
from boardreview.errors import UnknownStateError

# (text id, display name) in workflow order.
WORKFLOW_STATES = (
    ("ready_init_review", "Ready for initial review"),
    ("reject_journal_title", "Rejected by NOT list"),
    ("reject_init_review", "Rejected in initial review"),
    ("passed_init_review", "Passed initial review"),
    ("published", "Published"),
    ("reject_bm_review", "Rejected by Board Manager"),
    ("passed_bm_review", "Passed Board Manager"),
    ("reject_full_review", "Rejected after full text review"),
    ("passed_full_review", "Passed full text review"),
    ("fyi", "Flagged as FYI"),
    ("on_hold", "On Hold"),
    ("full_end", "Full text review complete"),
)


def ensure_workflow_states(session: Session) -> int:
    """Insert any missing workflow states; return how many were added."""
    existing = set(session.exec(select(StateType.text_id)).all())
    added = 0
    for sequence, (text_id, name) in enumerate(WORKFLOW_STATES, start=10):
        if text_id in existing:
            continue
        session.add(StateType(text_id=text_id, name=name, sequence=sequence))
        added += 1
    if added:
        session.commit()
    return added


class StateCatalog:
    """Read-only two-way lookup between state names and ids."""

    def __init__(self, states: Mapping[str, int]) -> None:
        self._ids = MappingProxyType(dict(states))
        self._names = MappingProxyType({state_id: name for name, state_id in states.items()})

    @classmethod
    def load(cls, session: Session) -> "StateCatalog":
        rows = session.exec(select(StateType.text_id, StateType.id)).all()
        return cls({text_id: state_id for text_id, state_id in rows})

    def state_id(self, name: str) -> int:
        try:
            return self._ids[name]
        except KeyError:
            raise UnknownStateError(f"workflow state {name!r} is not registered") from None

    def symbolic_name(self, state_id: int) -> str:
        try:
            return self._names[state_id]
        except KeyError:
            raise UnknownStateError(f"workflow state id {state_id} is not registered") from None

    def __contains__(self, name: object) -> bool:
        return name in self._ids

    def __len__(self) -> int:
        return len(self._ids)
