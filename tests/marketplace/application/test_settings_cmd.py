"""Application tests for platform settings via domain.process()."""

import pytest
from marketplace.settings.management import UpdatePlatformSetting
from marketplace.settings.setting import DEFAULT_SETTINGS, PlatformSetting, current_setting, decimal_setting
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


def _update(key, value, label=None):
    return current_domain.process(UpdatePlatformSetting(key=key, value=value, label=label), asynchronous=False)


class TestPlatformSettings:
    def test_defaults_apply_until_changed(self):
        assert current_setting("tax_rate") == DEFAULT_SETTINGS["tax_rate"]

    def test_update(self):
        assert _update("shipping_flat_rate", "20.00", label="Flat shipping") == "shipping_flat_rate"

        setting = current_domain.repository_for(PlatformSetting).get("shipping_flat_rate")
        assert setting.value == "20.00"
        assert setting.label == "Flat shipping"
        assert str(decimal_setting("shipping_flat_rate")) == "20.00"

    def test_update_keeps_label(self):
        _update("tax_rate", "18", label="IGV")
        _update("tax_rate", "16")
        assert current_domain.repository_for(PlatformSetting).get("tax_rate").label == "IGV"

    def test_numeric_settings_reject_text(self):
        with pytest.raises(ValidationError):
            _update("artist_commission_rate", "twenty")

    def test_numeric_settings_reject_negative_values(self):
        with pytest.raises(ValidationError):
            _update("tax_rate", "-1")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity"])
    def test_numeric_settings_reject_non_finite_values(self, value):
        with pytest.raises(ValidationError):
            _update("referral_commission_rate", value)
        assert current_setting("referral_commission_rate") == DEFAULT_SETTINGS["referral_commission_rate"]

    @pytest.mark.parametrize("key", ["artist_commission_rate", "referral_commission_rate", "customization_fulfiller_rate", "tax_rate"])
    def test_percentage_settings_cannot_exceed_one_hundred(self, key):
        with pytest.raises(ValidationError):
            _update(key, "150")
        _update(key, "100")
        assert current_setting(key) == "100"

    def test_flat_shipping_is_not_a_percentage(self):
        _update("shipping_flat_rate", "250.00")
        assert current_setting("shipping_flat_rate") == "250.00"

    def test_currency_is_free_text(self):
        _update("currency", "USD")
        assert current_setting("currency") == "USD"

    def test_unknown_key_without_default(self):
        with pytest.raises(ObjectNotFoundError):
            current_setting("does_not_exist")
