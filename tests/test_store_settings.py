"""
Store settings readers against the database row.
"""

from app.models import StoreSettings
from app.store_settings import load_delivery_settings, load_settings_snapshot, load_tax_settings


def store_row(db, **fields):
    db.add(StoreSettings(**fields))
    db.commit()


class TestTaxSettings:
    def test_reads_the_settings_row(self, db, seed):
        seed.settings(tax_percentage=8.0, tax_enabled=False)
        tax = load_tax_settings(db)
        assert tax.tax_percentage == 8.0
        assert tax.enabled is False

    def test_tax_enabled_by_default(self, db, seed):
        seed.settings()
        assert load_tax_settings(db).enabled is True

    def test_missing_row(self, db):
        assert load_tax_settings(db) is None

    def test_missing_tax_percentage(self, db):
        store_row(db, store_enabled=True, delivery_methods={"pickupEnabled": True})
        assert load_tax_settings(db) is None
        assert load_delivery_settings(db) is not None


class TestDeliverySettings:
    def test_reads_the_settings_row(self, db, seed):
        seed.settings(homeDeliveryEnabled=False, shippingEnabled=False)
        delivery = load_delivery_settings(db)
        assert delivery.store_enabled is True
        assert delivery.enabled_methods() == ["arrangeWithSeller", "pickup"]

    def test_missing_row(self, db):
        assert load_delivery_settings(db) is None

    def test_delivery_methods_not_an_object(self, db):
        store_row(db, store_enabled=True, tax_percentage=16.0, delivery_methods=["pickup"])
        assert load_delivery_settings(db) is None
        assert load_tax_settings(db).tax_percentage == 16.0


class TestSnapshot:
    def test_snapshot_matches_the_individual_readers(self, db, seed):
        seed.settings()
        snapshot = load_settings_snapshot(db)
        assert snapshot.tax == load_tax_settings(db)
        assert snapshot.delivery == load_delivery_settings(db)

    def test_missing_row_gives_an_empty_snapshot(self, db):
        snapshot = load_settings_snapshot(db)
        assert snapshot.tax is None
        assert snapshot.delivery is None
