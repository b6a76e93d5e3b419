"""Validation layer - Parseo de payloads."""

from .payload_parser import ParseResult, parse_payload

__all__ = ["ParseResult", "parse_payload"]
