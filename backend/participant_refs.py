"""Participant references stored in registration lists and confirmed sets.

A reference is either ``Resolved`` (points at a concrete CC, NCP,
through-CC or walk-in account) or a ``Placeholder`` held by a sponsoring
CC account until the real participant is substituted in.
"""
from dataclasses import dataclass
from typing import Union

from models import RefKind

DUMMY_LABEL = "dummy"


@dataclass(frozen=True)
class Resolved:
    kind: RefKind
    id: int


@dataclass(frozen=True)
class Placeholder:
    owner_id: int

    @property
    def kind(self) -> RefKind:
        return RefKind.PLACEHOLDER

    @property
    def id(self) -> int:
        return self.owner_id


ParticipantRef = Union[Resolved, Placeholder]


def ref_of(row) -> ParticipantRef:
    if row.ref_kind == RefKind.PLACEHOLDER:
        return Placeholder(owner_id=row.ref_id)
    return Resolved(kind=row.ref_kind, id=row.ref_id)


def assign_ref(row, ref: ParticipantRef) -> None:
    row.ref_kind = ref.kind
    row.ref_id = ref.id


def is_placeholder(ref: ParticipantRef) -> bool:
    return isinstance(ref, Placeholder)


def ref_matches(row, ref: ParticipantRef) -> bool:
    return row.ref_kind == ref.kind and row.ref_id == ref.id
