"""Domain layer - Modelos."""

from .packet import AirQualityPacket, TimestampedReading

__all__ = ["AirQualityPacket", "TimestampedReading"]
