"""Bridge de calidad de aire: MQTT → InfluxDB."""
