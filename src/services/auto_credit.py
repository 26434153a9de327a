"""
Auto-Credit Resolver

Pending assets flagged with auto_credit become received once their
scheduled date arrives. The auto_credit flag itself is left as is.
"""

from datetime import datetime

import structlog

from src.models.ledger import Asset, Ledger, RecordKind
from src.services.periods import to_local

logger = structlog.get_logger(__name__)


def is_due_for_credit(asset: Asset, now: datetime) -> bool:
    return (
        asset.is_received is False
        and asset.auto_credit is True
        and to_local(asset.date) <= to_local(now)
    )


def resolve_auto_credits(ledger: Ledger, now: datetime) -> tuple[Ledger, list[Asset]]:
    """
    Flip due auto-credit assets to received.

    Returns:
        (updated ledger, credited assets). The same ledger object is
        returned when nothing was due.
    """
    credited: list[Asset] = []
    assets: list[Asset] = []
    for asset in ledger.assets:
        if is_due_for_credit(asset, now):
            asset = asset.model_copy(update={"is_received": True})
            credited.append(asset)
        assets.append(asset)

    if not credited:
        return ledger, credited

    logger.info(
        "assets_auto_credited",
        asset_ids=[asset.id for asset in credited],
    )
    return ledger.with_records(RecordKind.ASSET, assets), credited
