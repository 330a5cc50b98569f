"""
Store policy reader.

Reads the store settings singleton row and hands it to the shopcore policy
parsers. A missing row yields None settings, which the validator rejects.
"""

from typing import Optional
import logging

from sqlalchemy.orm import Session

from app.models import StoreSettings, STORE_SETTINGS_ID
from shopcore.policy import (
    DeliverySettings,
    SettingsSnapshot,
    TaxSettings,
    parse_delivery_settings,
    parse_tax_settings,
    snapshot_from_record,
)

logger = logging.getLogger("shop.store_settings")


def _settings_record(db: Session) -> Optional[dict]:
    row = db.get(StoreSettings, STORE_SETTINGS_ID)
    return row.to_record() if row is not None else None


def load_tax_settings(db: Session) -> Optional[TaxSettings]:
    return parse_tax_settings(_settings_record(db))


def load_delivery_settings(db: Session) -> Optional[DeliverySettings]:
    return parse_delivery_settings(_settings_record(db))


def load_settings_snapshot(db: Session) -> SettingsSnapshot:
    """Tax and delivery settings from a single read, for one order attempt."""
    snapshot = snapshot_from_record(_settings_record(db))
    logger.debug("store_settings: tax=%s delivery=%s", snapshot.tax, snapshot.delivery)
    return snapshot
