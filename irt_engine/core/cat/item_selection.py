"""
Maximum Fisher Information (MFI) item selection for Computerized Adaptive Testing.

Selects the next item from a candidate pool that maximizes 3PL Fisher
information at the examinee's current ability estimate (theta).

The selection pipeline:
1. Filter out excluded items (already administered or otherwise disallowed)
2. Require calibrated 3PL parameters with a positive discrimination
3. Compute Fisher information for each eligible item at theta
4. Keep the first item whose information strictly exceeds the best so far,
   starting from 0

Because the running best starts at 0, an item with zero information is never
selected: if every candidate is degenerate at theta, no item is returned.
Ties keep the earliest item, so callers should supply the pool in a stable
order (e.g. sorted by id) for reproducible selection.
"""

import logging
from dataclasses import dataclass
from typing import (
    Any,
    Iterable,
    Optional,
    Protocol,
    Sequence,
    runtime_checkable,
)

from irt_engine.core.cat.response_model import ResponseModel

logger = logging.getLogger(__name__)


@runtime_checkable
class CalibratedItem(Protocol):
    """Protocol for items carrying (possibly missing) 3PL parameters.

    Satisfied by irt_engine.models.Item; select_next_item filters out items
    whose parameters are still None.
    """

    @property
    def id(self) -> Any:
        ...

    @property
    def discrimination(self) -> Optional[float]:
        ...

    @property
    def difficulty(self) -> Optional[float]:
        ...

    @property
    def guessing(self) -> Optional[float]:
        ...


@dataclass
class ItemCandidate:
    """An item with its computed Fisher information value."""

    item: Any
    information: float


def _is_eligible(item: CalibratedItem, excluded_ids: set) -> bool:
    return (
        item.id not in excluded_ids
        and item.discrimination is not None
        and item.difficulty is not None
        and item.guessing is not None
        and item.discrimination > 0
    )


def select_next_item(
    item_pool: Sequence[CalibratedItem],
    theta_estimate: float,
    exclude_ids: Optional[Iterable[Any]] = None,
    response_model: Optional[ResponseModel] = None,
) -> Optional[Any]:
    """
    Select the item with maximum Fisher information at theta_estimate.

    Args:
        item_pool: Candidate items (must have id, discrimination, difficulty
            and guessing attributes).
        theta_estimate: Current ability estimate.
        exclude_ids: IDs that must not be selected.
        response_model: Information function provider. Defaults to 3PL.

    Returns:
        The selected item, or None if no candidate has positive information.
    """
    response_model = response_model or ResponseModel()
    excluded_ids = set(exclude_ids) if exclude_ids is not None else set()

    eligible = [item for item in item_pool if _is_eligible(item, excluded_ids)]

    if not eligible:
        logger.warning(
            "No eligible items remaining after filtering. "
            f"Pool size: {len(item_pool)}, excluded: {len(excluded_ids)}"
        )
        return None

    best: Optional[ItemCandidate] = None
    max_information = 0.0
    for item in eligible:
        # Type assertion: we already filtered for non-None values above
        assert item.discrimination is not None
        assert item.difficulty is not None
        assert item.guessing is not None
        info = response_model.information(
            theta_estimate, item.discrimination, item.difficulty, item.guessing
        )
        if info > max_information:
            max_information = info
            best = ItemCandidate(item=item, information=info)

    if best is None:
        logger.info(
            f"No item carries positive information at theta={theta_estimate:.3f} "
            f"({len(eligible)} eligible)"
        )
        return None

    logger.debug(
        f"Item selection: theta={theta_estimate:.3f}, "
        f"eligible={len(eligible)}, "
        f"selected {best.item.id} "
        f"(a={best.item.discrimination:.2f}, "
        f"b={best.item.difficulty:.2f}, "
        f"c={best.item.guessing:.2f}, "
        f"info={best.information:.4f})"
    )

    return best.item


class AdaptiveSelector:
    """Chooses the next item to administer by maximum Fisher information."""

    def __init__(self, response_model: Optional[ResponseModel] = None):
        self.response_model = response_model or ResponseModel()

    def select_next(
        self,
        theta: float,
        candidate_items: Sequence[CalibratedItem],
        exclude_ids: Optional[Iterable[Any]] = None,
    ) -> Optional[Any]:
        """
        Return the id of the most informative candidate, or None.

        None means "no suitable item": the pool is empty after exclusions, or
        no candidate has strictly positive information at theta.
        """
        item = select_next_item(
            candidate_items,
            theta,
            exclude_ids=exclude_ids,
            response_model=self.response_model,
        )
        return item.id if item is not None else None
