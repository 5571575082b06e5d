# Overview: Pytest coverage for line pricing; GST policy, stock checks and IMEI validation.

import logging
from decimal import Decimal

import pytest
from conftest import make_offer, phone_imeis
from mobilepos.config import PricingSettings
from mobilepos.errors import ValidationError, InsufficientStockError, ImeiMismatchError
from mobilepos.models import Product
from mobilepos.services.pricing_service import price_cart, split_tax, is_mobile_category


class TestSplitTax:

    def test_reverse_gst_on_inclusive_total(self):
        tax = split_tax(20000, 12)
        assert tax.taxable_value == 17857
        assert tax.gst_amount == 2143
        assert tax.cgst == Decimal("1071.50")
        assert tax.sgst == Decimal("1071.50")

    def test_zero_rate(self):
        tax = split_tax(999, 0)
        assert tax.taxable_value == 999
        assert tax.gst_amount == 0

    def test_parts_add_back_to_total(self):
        for total in (1, 99, 1180, 54321):
            tax = split_tax(total, 18)
            assert tax.taxable_value + tax.gst_amount == total
            assert tax.cgst + tax.sgst == tax.gst_amount


class TestGstPolicy:

    def test_mobile_rate_pinned_whatever_client_sends(self, db_session, phone, settings):
        lines = price_cart(
            [{"product_id": phone.id, "quantity": 1, "imei": phone_imeis(2), "gst_percent": 28}],
            settings,
        )
        assert lines[0].gst_percent == Decimal("12")

    def test_mobile_rate_follows_configuration(self, db_session, phone):
        custom = PricingSettings(mobile_gst_percent=5)
        lines = price_cart([{"product_id": phone.id, "imei": phone_imeis(2)}], custom)
        assert lines[0].gst_percent == Decimal("5")

    def test_accessory_takes_client_rate(self, db_session, charger, settings):
        lines = price_cart([{"product_id": charger.id, "quantity": 1, "gst_percent": "5"}], settings)
        assert lines[0].gst_percent == Decimal("5")

    def test_accessory_falls_back_to_product_rate(self, db_session, charger, settings):
        lines = price_cart([{"product_id": charger.id, "quantity": 1}], settings)
        assert lines[0].gst_percent == Decimal("18")

    def test_client_rate_out_of_range_rejected(self, db_session, charger, settings):
        with pytest.raises(ValidationError):
            price_cart([{"product_id": charger.id, "quantity": 1, "gst_percent": 150}], settings)

    def test_category_keyword_match_is_case_insensitive(self, settings):
        assert is_mobile_category("Mobile Phones", settings)
        assert is_mobile_category("SMARTPHONE refurb", settings)
        assert not is_mobile_category("Chargers", settings)
        assert not is_mobile_category(None, settings)

    def test_keywords_match_whole_words_only(self, settings):
        assert is_mobile_category("Phones", settings)
        assert not is_mobile_category("Earphones", settings)
        assert not is_mobile_category("Wireless Earbuds", settings)
        assert not is_mobile_category("Microphone", settings)

    def test_earphones_keep_stored_rate(self, db_session, settings):
        earphones = Product(
            name="Rockerz 255",
            brand="boAt",
            category="Earphones",
            purchase_price=700,
            selling_price=1299,
            gst_percent=18,
            stock_quantity=4,
            track_imei=False,
        )
        db_session.add(earphones)
        db_session.commit()

        line = price_cart([{"product_id": earphones.id, "quantity": 1}], settings)[0]
        assert line.gst_percent == Decimal("18")


class TestCatalogLines:

    def test_catalog_line_uses_selling_price(self, db_session, phone, settings):
        line = price_cart([{"product_id": phone.id, "quantity": 1, "imei": phone_imeis(2)}], settings)[0]
        assert line.unit_price == 20000
        assert line.original_price == 20000
        assert line.purchase_price == 17000
        assert line.line_total == 20000
        assert line.sim_type == "Dual SIM"
        assert line.imeis == phone_imeis(2)

    def test_offer_applied_and_recorded(self, db_session, charger, settings):
        make_offer(db_session, name="Charger deal", target_id=str(charger.id), discount_value=20)
        line = price_cart([{"product_id": charger.id, "quantity": 2}], settings)[0]
        assert line.unit_price == 400
        assert line.offer_name == "Charger deal"
        assert line.offer_discount == 100
        assert line.line_total == 800

    def test_price_override_skips_offer(self, db_session, charger, settings):
        make_offer(db_session, name="Charger deal", target_id=str(charger.id), discount_value=20)
        line = price_cart([{"product_id": charger.id, "quantity": 1, "price": 450}], settings)[0]
        assert line.unit_price == 450
        assert line.offer_name is None
        assert line.offer_discount == 0

    def test_line_discount_floors_at_zero(self, db_session, charger, settings):
        line = price_cart([{"product_id": charger.id, "quantity": 1, "discount": 900}], settings)[0]
        assert line.line_total == 0

    def test_insufficient_stock_names_counts(self, db_session, charger, settings):
        with pytest.raises(InsufficientStockError) as exc:
            price_cart([{"product_id": charger.id, "quantity": 11}], settings)
        assert exc.value.details["available"] == 10
        assert exc.value.details["requested"] == 11
        assert exc.value.details["product_name"] == "Fast Charger 25W"

    def test_same_product_on_two_lines_checked_together(self, db_session, charger, settings):
        with pytest.raises(InsufficientStockError) as exc:
            price_cart(
                [{"product_id": charger.id, "quantity": 6}, {"product_id": charger.id, "quantity": 5}],
                settings,
            )
        assert exc.value.details["requested"] == 11

    def test_unknown_product_rejected(self, db_session, settings):
        with pytest.raises(ValidationError):
            price_cart([{"product_id": 424242, "quantity": 1}], settings)

    def test_fractional_quantity_rejected(self, db_session, charger, settings):
        with pytest.raises(ValidationError):
            price_cart([{"product_id": charger.id, "quantity": 1.5}], settings)

    def test_catalog_product_never_mutated(self, db_session, charger, settings):
        price_cart([{"product_id": charger.id, "quantity": 4}], settings)
        db_session.expire_all()
        assert db_session.get(Product, charger.id).stock_quantity == 10


class TestImeiValidation:

    def test_dual_sim_needs_two_serials_per_unit(self, db_session, phone, settings):
        with pytest.raises(ImeiMismatchError) as exc:
            price_cart([{"product_id": phone.id, "quantity": 2, "imei": phone_imeis(3)}], settings)
        assert exc.value.expected == 4
        assert exc.value.received == 3

    def test_duplicate_serial_rejected(self, db_session, phone, settings):
        serial = phone_imeis(1)[0]
        with pytest.raises(ValidationError):
            price_cart([{"product_id": phone.id, "quantity": 1, "imei": [serial, serial]}], settings)

    def test_serial_on_two_lines_rejected(self, db_session, phone, settings):
        with pytest.raises(ValidationError):
            price_cart(
                [
                    {"product_id": phone.id, "quantity": 1, "imei": phone_imeis(2)},
                    {"product_id": phone.id, "quantity": 1, "imei": phone_imeis(2, start=1)},
                ],
                settings,
            )

    def test_unknown_serial_logged_not_rejected(self, db_session, phone, settings, caplog):
        with caplog.at_level(logging.WARNING):
            lines = price_cart([{"product_id": phone.id, "quantity": 1, "imei": ["111", "222"]}], settings)
        assert lines[0].imeis == ["111", "222"]
        assert "IMEI not in stock" in caplog.text

    def test_unknown_serial_rejected_when_configured(self, db_session, phone):
        strict = PricingSettings(reject_unknown_imeis=True)
        with pytest.raises(ValidationError):
            price_cart([{"product_id": phone.id, "quantity": 1, "imei": ["111", "222"]}], strict)

    def test_untracked_product_ignores_serials(self, db_session, charger, settings):
        line = price_cart([{"product_id": charger.id, "quantity": 1, "imei": ["abc"]}], settings)[0]
        assert line.imeis == []


class TestAdhocLines:

    def test_adhoc_defaults(self, db_session, settings):
        line = price_cart([{"product_id": "", "name": "Used iPhone 11", "price": 15000}], settings)[0]
        assert line.product is None
        assert line.product_id is None
        assert line.category == "Others"
        assert line.gst_percent == Decimal("18")
        assert line.quantity == 1
        assert line.imeis == []

    def test_adhoc_client_gst(self, db_session, settings):
        line = price_cart([{"name": "Repair", "price": 1000, "gst_percent": 5}], settings)[0]
        assert line.gst_percent == Decimal("5")

    def test_adhoc_requires_name_and_price(self, db_session, settings):
        with pytest.raises(ValidationError):
            price_cart([{"price": 100}], settings)
        with pytest.raises(ValidationError):
            price_cart([{"name": "Repair"}], settings)


class TestCartFailures:

    def test_empty_cart_rejected(self, db_session, settings):
        with pytest.raises(ValidationError):
            price_cart([], settings)

    def test_every_failure_reported(self, db_session, phone, charger, settings):
        with pytest.raises(InsufficientStockError) as exc:
            price_cart(
                [
                    {"product_id": charger.id, "quantity": 50},
                    {"product_id": phone.id, "quantity": 1, "imei": phone_imeis(1)},
                ],
                settings,
            )
        errors = exc.value.details["errors"]
        assert len(errors) == 2
        assert errors[1]["details"]["expected"] == 2
        assert exc.value.details["position"] == 1
