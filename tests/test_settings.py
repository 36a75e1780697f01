from decimal import Decimal

import pytest
from pydantic import ValidationError

from rider_dispatch.settings import (
    APISettings,
    BookingSettings,
    DispatchSettings,
    MatchingSettings,
    RetrySettings,
    Settings,
)


@pytest.mark.unit
class TestAPISettings:
    def test_missing_api_key_fails(self, monkeypatch):
        monkeypatch.delenv("API_KEY", raising=False)

        with pytest.raises(ValidationError, match="API_KEY"):
            APISettings()

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "from-env")

        assert APISettings().key == "from-env"


@pytest.mark.unit
class TestMatchingSettings:
    def test_defaults(self):
        settings = MatchingSettings()

        assert settings.default_radius_km == 15.0
        assert settings.max_radius_km == 50.0
        assert settings.use_spatial_index is True

    def test_default_radius_cannot_exceed_max(self):
        with pytest.raises(ValidationError, match="cannot exceed"):
            MatchingSettings(default_radius_km=60, max_radius_km=50)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MATCHING_DEFAULT_RADIUS_KM", "5")

        assert MatchingSettings().default_radius_km == 5.0


@pytest.mark.unit
class TestDispatchSettings:
    def test_prefix_is_uppercased(self):
        assert DispatchSettings(tracking_prefix="ldy").tracking_prefix == "LDY"

    @pytest.mark.parametrize("prefix", ["L-1", "", "TOOLONGPREFIX"])
    def test_bad_prefix_rejected(self, prefix):
        with pytest.raises(ValidationError):
            DispatchSettings(tracking_prefix=prefix)

    def test_commission_bounds(self):
        assert DispatchSettings().default_commission_rate == Decimal("15.00")
        with pytest.raises(ValidationError):
            DispatchSettings(default_commission_rate=Decimal("101"))


@pytest.mark.unit
class TestOtherSettings:
    def test_booking_lead_windows(self, monkeypatch):
        monkeypatch.setenv("BOOKING_CANCEL_LEAD_HOURS", "6")

        settings = BookingSettings()

        assert settings.cancel_lead_hours == 6.0
        assert settings.edit_lead_hours == 4.0

    def test_retry_config(self):
        config = RetrySettings(max_attempts=5, base_delay=0.1).to_config()

        assert config.max_attempts == 5
        assert config.base_delay == 0.1

    def test_root_settings_compose(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "compose-key")

        settings = Settings()

        assert settings.api.key == "compose-key"
        assert settings.dispatch.tracking_prefix == "TRK"
        assert settings.booking.cancel_lead_hours == 2.0
