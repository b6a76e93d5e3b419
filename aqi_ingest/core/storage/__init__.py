"""Storage layer - Escritura en InfluxDB."""

from .influx_writer import SERIES_NAME, ReadingWriter, WriteResult, build_point

__all__ = ["SERIES_NAME", "ReadingWriter", "WriteResult", "build_point"]
