"""
Catalog reconciler for bulk product import.

Decides, for each validated candidate, whether the row creates a new
product, updates an existing one, or is skipped. Pure: the existing
catalog arrives as a SKU index and nothing is written here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional, Sequence
import structlog

from models.product import ProductResponse
from parsers.row_validator import CandidateProduct

logger = structlog.get_logger(__name__)


class ReconcileDecision(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DUPLICATE_IN_BATCH = "DUPLICATE_IN_BATCH"
    CONFLICTS_EXISTING = "CONFLICTS_EXISTING"


@dataclass
class ReconciledCandidate:
    """A candidate plus what to do with it."""
    candidate: CandidateProduct
    decision: ReconcileDecision
    existing_product_id: Optional[str] = None
    first_row_index: Optional[int] = None  # for duplicates: the row that won

    @property
    def is_writable(self) -> bool:
        return self.decision in (ReconcileDecision.CREATE, ReconcileDecision.UPDATE)


def reconcile(
    candidates: Sequence[CandidateProduct],
    existing_sku_index: Mapping[str, ProductResponse],
    merchant_id: str,
) -> list[ReconciledCandidate]:
    """
    Reconcile candidates against the existing catalog.

    Rules, applied in file order:
    - a SKU seen earlier in the batch makes this row DUPLICATE_IN_BATCH
      (the first occurrence wins, whatever its own decision);
    - no SKU, or a SKU not in the catalog, is a CREATE;
    - a SKU owned by this merchant is an UPDATE of that product;
    - a SKU owned by another merchant is CONFLICTS_EXISTING.

    Args:
        candidates: Valid candidates in file order
        existing_sku_index: SKU -> existing product, across all merchants
        merchant_id: Merchant running the import

    Returns:
        One ReconciledCandidate per candidate, same order
    """
    seen: dict[str, int] = {}
    reconciled: list[ReconciledCandidate] = []

    for candidate in candidates:
        sku = candidate.sku
        if sku is None:
            reconciled.append(ReconciledCandidate(candidate, ReconcileDecision.CREATE))
            continue

        if sku in seen:
            reconciled.append(ReconciledCandidate(
                candidate,
                ReconcileDecision.DUPLICATE_IN_BATCH,
                first_row_index=seen[sku],
            ))
            continue
        seen[sku] = candidate.row_index

        existing = existing_sku_index.get(sku)
        if existing is None:
            decision = ReconciledCandidate(candidate, ReconcileDecision.CREATE)
        elif existing.merchant_id == merchant_id:
            decision = ReconciledCandidate(
                candidate,
                ReconcileDecision.UPDATE,
                existing_product_id=existing.id,
            )
        else:
            decision = ReconciledCandidate(
                candidate,
                ReconcileDecision.CONFLICTS_EXISTING,
                existing_product_id=existing.id,
            )
        reconciled.append(decision)

    logger.info(
        "candidates_reconciled",
        merchant_id=merchant_id,
        total=len(reconciled),
        **{
            d.value.lower(): sum(1 for r in reconciled if r.decision == d)
            for d in ReconcileDecision
        },
    )
    return reconciled
