"""Shared constants for the warren runtime."""
from __future__ import annotations

SERVICE_NAME = "warren"
