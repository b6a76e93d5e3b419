"""Core module - Pipeline de ingesta.

Estructura:
- transport/   → Suscripción MQTT y handler por mensaje
- domain/      → Modelos de dominio
- validation/  → Parseo del payload
- storage/     → Escritura en InfluxDB
"""
