from __future__ import annotations

import os


class IntegrationError(RuntimeError):
    pass


class IntegrationDisabledError(IntegrationError):
    pass


class IntegrationMisconfiguredError(IntegrationError):
    pass


class IntegrationTimeoutError(IntegrationError):
    pass


def timeout_seconds(env_name: str, default_ms: int) -> float:
    raw = (os.getenv(env_name) or str(default_ms)).strip()
    try:
        timeout_ms = int(raw)
    except Exception:
        timeout_ms = int(default_ms)
    if timeout_ms < 100:
        timeout_ms = 100
    return float(timeout_ms) / 1000.0


def json_body(response, label: str, default=None):
    """Decoded JSON of ``response``; an undecodable body is an ``IntegrationError``."""
    if not response.content:
        return default
    try:
        return response.json()
    except ValueError as exc:
        raise IntegrationError(f"{label}_bad_payload status={response.status_code}") from exc
