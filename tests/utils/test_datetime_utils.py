"""
Tests for datetime utilities module.

All timestamps leave the server as ISO 8601 UTC with a 'Z' suffix.
"""
from datetime import datetime, timezone, timedelta

import pytest

from app.schemas.common import CamelModel, UTCDateTime
from app.utils.datetime_utils import utc_now, ensure_utc, to_iso_utc, parse_iso_utc


class TestEnsureUtc:
    """Tests for ensure_utc()."""

    def test_naive_is_assumed_utc(self):
        result = ensure_utc(datetime(2025, 12, 16, 11, 30))

        assert result == datetime(2025, 12, 16, 11, 30, tzinfo=timezone.utc)

    def test_offset_is_converted(self):
        manila = timezone(timedelta(hours=8))

        result = ensure_utc(datetime(2025, 12, 16, 19, 30, tzinfo=manila))

        assert result.tzinfo == timezone.utc
        assert result.hour == 11

    def test_none(self):
        assert ensure_utc(None) is None

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo == timezone.utc


class TestIsoFormatting:
    """Tests for to_iso_utc() and parse_iso_utc()."""

    def test_z_suffix(self):
        value = to_iso_utc(datetime(2025, 12, 16, 11, 30, 0, 123456, tzinfo=timezone.utc))

        assert value == "2025-12-16T11:30:00.123456Z"

    def test_none(self):
        assert to_iso_utc(None) is None

    @pytest.mark.parametrize("value", [
        "2025-12-16T11:30:00Z",
        "2025-12-16T11:30:00+00:00",
        "2025-12-16T19:30:00+08:00",
        "2025-12-16T11:30:00",
    ])
    def test_parse_variants(self, value):
        assert parse_iso_utc(value) == datetime(2025, 12, 16, 11, 30, tzinfo=timezone.utc)

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_iso_utc("yesterday")


class TestUTCDateTimeField:
    """Schemas serialise datetimes through to_iso_utc in JSON mode."""

    class Stamp(CamelModel):
        created_at: UTCDateTime

    def test_json_dump_uses_z_suffix(self):
        stamp = self.Stamp(created_at=datetime(2025, 12, 16, 11, 30))

        assert stamp.model_dump(mode="json", by_alias=True) == {"createdAt": "2025-12-16T11:30:00Z"}

    def test_python_dump_keeps_datetime(self):
        moment = datetime(2025, 12, 16, 11, 30, tzinfo=timezone.utc)

        assert self.Stamp(created_at=moment).model_dump()["created_at"] == moment
