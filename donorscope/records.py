"""
donorscope.records
==================
Read-only donor activity records and the repository contract through
which the prediction engine ingests them.

Records are owned by the external donor store (CRM, relational or document
database).  The analytics core only reads them, so every record type is a
frozen dataclass and collections are stored as tuples.  Timestamps are
coerced to :class:`pandas.Timestamp` on construction, which lets callers pass
``datetime`` objects or ISO strings interchangeably.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Hashable, Iterable, List, Optional, Protocol, Union

import pandas as pd

Amount = Union[float, int, Decimal]


def _to_timestamp(value) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    if pd.isna(ts):
        raise ValueError("Record timestamps must not be missing.")
    # Mixing tz-aware and naive timestamps breaks date arithmetic downstream.
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


@dataclass(frozen=True)
class Donation:
    """A single completed gift."""

    amount: Amount
    occurred_at: pd.Timestamp
    project_category: Optional[str] = None

    def __post_init__(self):
        if float(self.amount) < 0:
            raise ValueError(
                f"`amount` must be non-negative, got {self.amount!r}."
            )
        object.__setattr__(self, "occurred_at", _to_timestamp(self.occurred_at))


@dataclass(frozen=True)
class Communication:
    """An outreach touch and whether the donor responded to it."""

    occurred_at: pd.Timestamp
    response: bool = False

    def __post_init__(self):
        object.__setattr__(self, "occurred_at", _to_timestamp(self.occurred_at))
        object.__setattr__(self, "response", bool(self.response))


@dataclass(frozen=True)
class EventParticipation:
    """Attendance at a fundraising or stewardship event."""

    category: str
    occurred_at: pd.Timestamp

    def __post_init__(self):
        object.__setattr__(self, "occurred_at", _to_timestamp(self.occurred_at))


@dataclass(frozen=True)
class DonorRecord:
    """All activity recorded for one donor.

    Donations are kept in ascending ``occurred_at`` order regardless of the
    order they were supplied in.
    """

    id: Hashable
    donations: tuple = field(default_factory=tuple)
    communications: tuple = field(default_factory=tuple)
    event_participations: tuple = field(default_factory=tuple)

    def __post_init__(self):
        donations = sorted(self.donations, key=lambda d: d.occurred_at)
        object.__setattr__(self, "donations", tuple(donations))
        object.__setattr__(self, "communications", tuple(self.communications))
        object.__setattr__(
            self, "event_participations", tuple(self.event_participations)
        )


class DonorRepository(Protocol):
    """Ingestion contract implemented by the external donor store.

    ``get_donor_by_id`` may either return ``None`` or raise
    :class:`~donorscope.exceptions.DonorNotFoundError` for an unknown id.
    """

    def get_all_donors(self) -> List[DonorRecord]:
        ...

    def get_donor_by_id(self, donor_id) -> Optional[DonorRecord]:
        ...


class InMemoryDonorRepository:
    """Dictionary-backed :class:`DonorRepository` for tests and notebooks.

    Parameters
    ----------
    donors : iterable of DonorRecord, optional
        Initial population. Later records replace earlier ones with the
        same id.

    Examples
    --------
    >>> from donorscope.records import DonorRecord, Donation, InMemoryDonorRepository
    >>> repo = InMemoryDonorRepository([DonorRecord("D1", [Donation(50, "2024-01-01")])])
    >>> repo.get_donor_by_id("D1").donations[0].amount
    50
    >>> repo.get_donor_by_id("missing") is None
    True
    """

    def __init__(self, donors: Optional[Iterable[DonorRecord]] = None):
        self._donors: Dict[Hashable, DonorRecord] = {}
        for donor in donors or ():
            self.add(donor)

    def add(self, donor: DonorRecord) -> None:
        self._donors[donor.id] = donor

    def get_all_donors(self) -> List[DonorRecord]:
        return list(self._donors.values())

    def get_donor_by_id(self, donor_id) -> Optional[DonorRecord]:
        return self._donors.get(donor_id)

    def __len__(self) -> int:
        return len(self._donors)
