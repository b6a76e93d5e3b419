"""Tests del writer de InfluxDB.

Ejecutar:
    pytest tests/test_influx_writer.py -v
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from aqi_ingest.core.domain.packet import TimestampedReading
from aqi_ingest.core.storage import influx_writer
from aqi_ingest.core.storage.influx_writer import (
    SERIES_NAME,
    ReadingWriter,
    WriteResult,
    build_point,
)
from common.config import ConfigError, StatenConfig


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def config() -> StatenConfig:
    return StatenConfig(
        mqtt_url="mqtt://localhost:1883",
        mqtt_topic="staten/aqi",
        influx_url="http://influx.local:8086",
        influx_db="staten",
    )


@pytest.fixture
def mock_influx():
    """Mock de InfluxDBClientAsync como async context manager."""
    with patch.object(influx_writer, "InfluxDBClientAsync") as client_cls:
        client = MagicMock()
        client.write_api.return_value.write = AsyncMock(return_value=True)
        client_cls.return_value.__aenter__.return_value = client
        client_cls.return_value.__aexit__.return_value = False
        yield client_cls, client


def _ns(dt: datetime) -> int:
    return int(dt.timestamp()) * 1_000_000_000 + dt.microsecond * 1000


# =============================================================================
# PUNTO
# =============================================================================

class TestBuildPoint:

    def test_point_shape(self):
        ts = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
        point = build_point(TimestampedReading(pm25=42, time=ts))

        line = point.to_line_protocol()

        assert line == f"aqi pm25=42i {_ns(ts)}"

    def test_series_name(self):
        assert SERIES_NAME == "aqi"

    def test_timestamp_within_window(self):
        before = datetime.now(timezone.utc)
        reading = TimestampedReading.now(42)
        after = datetime.now(timezone.utc)

        measurement, field, ts = build_point(reading).to_line_protocol().split(" ")

        assert measurement == "aqi"
        assert field == "pm25=42i"
        assert _ns(before) <= int(ts) <= _ns(after)


# =============================================================================
# ESCRITURA
# =============================================================================

class TestReadingWriter:

    @pytest.mark.asyncio
    async def test_write_single_point(self, config, mock_influx):
        client_cls, client = mock_influx
        writer = ReadingWriter.from_config(config)
        reading = TimestampedReading.now(42)

        result = await writer.write(reading)

        assert result == WriteResult(ok=True)
        client.write_api.return_value.write.assert_awaited_once()
        kwargs = client.write_api.return_value.write.await_args.kwargs
        assert kwargs["bucket"] == "staten"
        assert kwargs["record"].to_line_protocol() == build_point(reading).to_line_protocol()

    @pytest.mark.asyncio
    async def test_client_uses_configured_url(self, config, mock_influx):
        client_cls, _ = mock_influx

        await ReadingWriter.from_config(config).write(TimestampedReading.now(1))

        assert client_cls.call_args.kwargs["url"] == "http://influx.local:8086"
        assert client_cls.call_args.kwargs["org"] == "-"

    @pytest.mark.asyncio
    async def test_each_write_is_independent(self, config, mock_influx):
        """Sin batching: una escritura por lectura."""
        client_cls, client = mock_influx
        writer = ReadingWriter.from_config(config)

        for value in (1, 2, 3):
            await writer.write(TimestampedReading.now(value))

        assert client.write_api.return_value.write.await_count == 3
        assert client_cls.call_count == 3

    @pytest.mark.asyncio
    async def test_write_error_returns_failure(self, config, mock_influx):
        _, client = mock_influx
        client.write_api.return_value.write.side_effect = ConnectionError("refused")

        result = await ReadingWriter.from_config(config).write(TimestampedReading.now(7))

        assert result.ok is False
        assert "refused" in result.error

    @pytest.mark.asyncio
    async def test_unreachable_store(self):
        """Store inalcanzable → WriteResult fallido, sin excepción."""
        writer = ReadingWriter("http://127.0.0.1:1", "staten", timeout_ms=2000)

        result = await writer.write(TimestampedReading.now(7))

        assert result.ok is False
        assert result.error

    def test_from_config_reads_credentials_env(self, config, monkeypatch):
        monkeypatch.setenv("INFLUX_TOKEN", "user:secret")
        monkeypatch.setenv("INFLUX_ORG", "home")
        monkeypatch.setenv("INFLUX_TIMEOUT_MS", "2500")

        writer = ReadingWriter.from_config(config)

        assert writer.token == "user:secret"
        assert writer.org == "home"
        assert writer.timeout_ms == 2500
        assert writer.influx_db == "staten"

    def test_from_config_defaults(self, config, monkeypatch):
        monkeypatch.delenv("INFLUX_TOKEN", raising=False)
        monkeypatch.delenv("INFLUX_ORG", raising=False)
        monkeypatch.delenv("INFLUX_TIMEOUT_MS", raising=False)

        writer = ReadingWriter.from_config(config)

        assert writer.token is None
        assert writer.org == "-"

    @pytest.mark.parametrize("raw", ["ten", "2.5", "", "0", "-100"])
    def test_from_config_rejects_bad_timeout(self, config, monkeypatch, raw):
        monkeypatch.setenv("INFLUX_TIMEOUT_MS", raw)

        with pytest.raises(ConfigError, match="INFLUX_TIMEOUT_MS"):
            ReadingWriter.from_config(config)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
