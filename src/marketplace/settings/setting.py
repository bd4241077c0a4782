"""PlatformSetting aggregate — persisted platform configuration.

Commission rates, shipping, tax and reservation windows are stored as
key/value settings so the platform can change them without a deploy.
Values are read only at capture time (listing registration, order
creation, referral creation, ticket reservation); historical records keep
whatever rate was captured then.
"""

from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, String
from protean.utils.globals import current_domain

from marketplace.domain import marketplace
from marketplace.shared.money import to_decimal

DEFAULT_SETTINGS = {
    "artist_commission_rate": "20",
    "referral_commission_rate": "5",
    "customization_fulfiller_rate": "100",
    "shipping_flat_rate": "15.00",
    "tax_rate": "18",
    "order_reservation_minutes": "60",
    "ticket_reservation_minutes": "15",
    "referral_window_days": "0",
    "currency": "PEN",
}

_NUMERIC_KEYS = frozenset(DEFAULT_SETTINGS) - {"currency"}
_PERCENT_KEYS = frozenset({"artist_commission_rate", "referral_commission_rate", "customization_fulfiller_rate", "tax_rate"})


@marketplace.aggregate(limit=None)
class PlatformSetting:
    key = String(identifier=True, max_length=100)
    value = String(required=True, max_length=255)
    label = String(max_length=255)
    updated_at = DateTime()

    def change(self, value, label=None):
        if self.key in _NUMERIC_KEYS:
            try:
                number = to_decimal(value)
            except ArithmeticError as exc:
                raise ValidationError({"value": [f"{self.key} must be numeric"]}) from exc
            if not number.is_finite():
                raise ValidationError({"value": [f"{self.key} must be a finite number"]})
            if number < 0:
                raise ValidationError({"value": [f"{self.key} cannot be negative"]})
            if self.key in _PERCENT_KEYS and number > 100:
                raise ValidationError({"value": [f"{self.key} cannot exceed 100"]})
        self.value = str(value)
        if label is not None:
            self.label = label
        self.updated_at = datetime.now(UTC)


def current_setting(key):
    """Return the persisted value for ``key``, falling back to the built-in default."""
    try:
        return current_domain.repository_for(PlatformSetting).get(key).value
    except ObjectNotFoundError:
        if key not in DEFAULT_SETTINGS:
            raise
        return DEFAULT_SETTINGS[key]


def decimal_setting(key):
    return to_decimal(current_setting(key))


def int_setting(key):
    return int(to_decimal(current_setting(key)))
