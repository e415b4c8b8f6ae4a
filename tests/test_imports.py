"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors, that
re-exports from __init__.py files work correctly, and that the demo
entry point runs against the seeded store.
"""

from datetime import date

import pytest


class TestSchemaImports:
    def test_import_catalog_schema(self):
        from shootmatch.schemas.catalog_schema import CatalogSnapshot, CouponType, ServiceTag
        assert ServiceTag.TRAVEL_FEE == "travel_fee"
        assert CouponType.PERCENTAGE is not None
        assert CatalogSnapshot.build([], []).services == {}

    def test_import_booking_schema(self):
        from shootmatch.schemas.booking_schema import BookingStatus, TERMINAL_STATUSES
        assert BookingStatus.CONFIRMED == "Confirmado"
        assert BookingStatus.DELIVERED in TERMINAL_STATUSES

    def test_schema_package_reexports(self):
        from shootmatch.schemas import Booking, Client, Photographer, Service
        assert Booking is not None and Client is not None
        assert Photographer is not None and Service is not None


class TestEngineImports:
    def test_engine_package_reexports(self):
        from shootmatch.engine import (
            BookingLifecycle, MatchingService, PricingEngine, WalletLedger, authorize,
        )
        assert callable(authorize)
        assert BookingLifecycle is not None
        assert MatchingService is not None
        assert PricingEngine is not None
        assert WalletLedger is not None

    def test_engine_modules(self):
        from shootmatch.engine import availability, geo
        assert callable(availability.available_slots)
        assert callable(geo.distance_km)


class TestToolImports:
    def test_tools_package_reexports(self):
        from shootmatch.tools import InMemoryStore, MockPaymentGateway
        assert InMemoryStore().list_bookings() == []
        assert MockPaymentGateway().charges == {}

    def test_seed_store(self):
        from shootmatch.tools import InMemoryStore
        from shootmatch.tools.seed import CLIENTS, PHOTOGRAPHERS, SERVICES, seed_store

        store = InMemoryStore()
        seed_store(store, today=date(2026, 3, 16))
        assert len(store.list_photographers()) == len(PHOTOGRAPHERS)
        assert store.get_client("cl-batel").is_prepaid
        assert len(store.catalog_snapshot().services) == len(SERVICES)
        assert store.get_coupon("drone50").service_restriction_id == "drone"
        assert len(CLIENTS) == 2


class TestConfigImport:
    def test_import_config(self):
        from shootmatch.config import settings
        assert settings.matching.home_city
        assert 0.0 <= settings.pricing.payout_share <= 1.0
        assert settings.schedule.default_day_template


class TestPackageMetadata:
    def test_version(self):
        import shootmatch
        assert shootmatch.__version__ == "0.1.0"


class TestCommandLine:
    def test_quote(self, capsys):
        from main import main

        assert main(["quote", "--client", "cl-aguaverde", "--services", "foto"]) == 0
        assert "150.00" in capsys.readouterr().out

    def test_engine_error_exit_code(self, capsys):
        from main import main

        assert main(["quote", "--services", "tour360"]) == 1
        assert "UNKNOWN_SERVICE" in capsys.readouterr().out

    def test_unknown_command(self):
        from main import main

        with pytest.raises(SystemExit):
            main(["teleport"])
