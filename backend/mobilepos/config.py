# backend/mobilepos/config.py
from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Any, Mapping


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/mobilepos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///mobilepos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Pricing / settlement policy
    MOBILE_GST_PERCENT = float(os.environ.get("MOBILE_GST_PERCENT", "12"))
    DEFAULT_GST_PERCENT = float(os.environ.get("DEFAULT_GST_PERCENT", "18"))
    MOBILE_CATEGORY_KEYWORDS = ("mobile", "phone", "smartphone")
    MIXED_PAYMENT_TOLERANCE = int(os.environ.get("MIXED_PAYMENT_TOLERANCE", "1"))
    INVOICE_NUMBER_PREFIX = os.environ.get("INVOICE_NUMBER_PREFIX", "INV")
    INVOICE_SEQUENCE_PAD = int(os.environ.get("INVOICE_SEQUENCE_PAD", "3"))
    REJECT_UNKNOWN_IMEIS = _env_bool("REJECT_UNKNOWN_IMEIS", False)


@dataclass(frozen=True)
class PricingSettings:
    """
    Enumerated pricing and settlement policy.

    Built from the Flask config by name; unknown keys are never merged in.
    """
    mobile_gst_percent: float = 12.0
    default_gst_percent: float = 18.0
    mobile_category_keywords: tuple[str, ...] = ("mobile", "phone", "smartphone")
    mixed_payment_tolerance: int = 1
    invoice_number_prefix: str = "INV"
    invoice_sequence_pad: int = 3
    reject_unknown_imeis: bool = False

    def __post_init__(self):
        for name in ("mobile_gst_percent", "default_gst_percent"):
            value = getattr(self, name)
            if value < 0 or value > 100:
                raise ValueError(f"{name} must be between 0 and 100")
        if self.mixed_payment_tolerance < 0:
            raise ValueError("mixed_payment_tolerance must be >= 0")
        if self.invoice_sequence_pad < 1:
            raise ValueError("invoice_sequence_pad must be >= 1")
        if not self.invoice_number_prefix:
            raise ValueError("invoice_number_prefix is required")

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "PricingSettings":
        defaults = cls()
        keywords = config.get("MOBILE_CATEGORY_KEYWORDS", defaults.mobile_category_keywords)
        return cls(
            mobile_gst_percent=float(config.get("MOBILE_GST_PERCENT", defaults.mobile_gst_percent)),
            default_gst_percent=float(config.get("DEFAULT_GST_PERCENT", defaults.default_gst_percent)),
            mobile_category_keywords=tuple(k.lower() for k in keywords),
            mixed_payment_tolerance=int(config.get("MIXED_PAYMENT_TOLERANCE", defaults.mixed_payment_tolerance)),
            invoice_number_prefix=str(config.get("INVOICE_NUMBER_PREFIX", defaults.invoice_number_prefix)),
            invoice_sequence_pad=int(config.get("INVOICE_SEQUENCE_PAD", defaults.invoice_sequence_pad)),
            reject_unknown_imeis=bool(config.get("REJECT_UNKNOWN_IMEIS", defaults.reject_unknown_imeis)),
        )


def get_pricing_settings() -> PricingSettings:
    """Settings for the active Flask app; read per call so config changes apply."""
    from flask import current_app
    return PricingSettings.from_config(current_app.config)
