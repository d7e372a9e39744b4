"""
Store interfaces consumed by the IRT engine.

The engine performs no I/O of its own. Attempts, item parameters and ability
profiles are read and written through these protocols; the concrete
persistence (and its transactions) belongs to the caller.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Protocol, runtime_checkable

from irt_engine.models import AbilityProfile, Item, ItemResponseRecord, ScoredResponse


class NotFoundError(LookupError):
    """Raised by a store when an item or profile lookup has no match.

    The engine propagates this unmodified to its caller.
    """

    kind = "NotFound"

    def __init__(self, entity: str, key: object):  # noqa: D107
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


@runtime_checkable
class AttemptStore(Protocol):
    """Read access to examinee attempts."""

    def scored_responses(self, examinee_id: str, scale_id: str) -> List[ScoredResponse]:
        """Scored responses to calibrated items on a scale, oldest first.

        Attempts on uncalibrated items and unscored attempts are excluded.
        """
        ...

    def responses_for_item(self, item_id: str) -> List[ItemResponseRecord]:
        """Every response to an item with the respondent's current theta (or None)."""
        ...

    def attempt_count(self, item_id: str) -> int:
        """Number of recorded attempts on an item, scored or not."""
        ...


@runtime_checkable
class ItemStore(Protocol):
    """Read/write access to the item bank."""

    def get_item(self, item_id: str) -> Item:
        """Fetch one item. Raises NotFoundError if it does not exist."""
        ...

    def active_item_ids(self, scale_id: str) -> List[str]:
        """IDs of active items on a scale, sorted."""
        ...

    def calibrated_items(self, scale_id: str, exclude_ids: Iterable[str]) -> List[Item]:
        """Active calibrated items on a scale minus exclude_ids, sorted by id."""
        ...

    def update_parameters(
        self,
        item_id: str,
        a: float,
        b: float,
        c: float,
        sample_size: int,
        calibrated_at: datetime,
    ) -> None:
        """Overwrite an item's 3PL parameters and calibration metadata."""
        ...


@runtime_checkable
class ProfileStore(Protocol):
    """Read/write access to ability profiles keyed by (examinee, scale)."""

    def get(self, examinee_id: str, scale_id: str) -> Optional[AbilityProfile]:
        """Current profile, or None if the examinee was never estimated."""
        ...

    def upsert(
        self,
        examinee_id: str,
        scale_id: str,
        theta: float,
        standard_error: float,
        attempts_count: int,
    ) -> AbilityProfile:
        """Create or overwrite the profile."""
        ...
