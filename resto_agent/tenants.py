"""Tenant registry: inbound phone number -> restaurant credentials.

The mapping is static process configuration, loaded once at startup from a
JSONL file (one tenant per line) or an inline JSON list, and read-only while
calls are handled.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from resto_agent.errors import ConfigurationError, TenantNotFoundError

log = logging.getLogger("resto_agent.tenants")


class TenantConfig(BaseModel):
    """One restaurant account's call-routing configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tenant_id: str = Field(alias="tenantId", min_length=1)
    inbound_phone_number: str = Field(alias="inboundPhoneNumber", min_length=1)
    api_key: str = Field(alias="apiKey", min_length=1)
    manager_phone_number: str = Field(default="", alias="managerPhoneNumber")


class TenantRegistry:
    """Exact-match lookup of tenants by the number the caller dialed.

    There is no default tenant and no fuzzy matching: the key must equal the
    number exactly as delivered by the telephony layer.
    """

    def __init__(self, tenants: Iterable[TenantConfig] = ()) -> None:
        self._by_number: dict[str, TenantConfig] = {}
        for tenant in tenants:
            number = tenant.inbound_phone_number
            if number in self._by_number:
                raise ConfigurationError(
                    f"Inbound number {number!r} is configured for both "
                    f"{self._by_number[number].tenant_id} and {tenant.tenant_id}"
                )
            self._by_number[number] = tenant
        self._by_id = {tenant.tenant_id: tenant for tenant in self._by_number.values()}

    def resolve(self, phone_number: str | None) -> TenantConfig:
        """Return the tenant for ``phone_number`` or raise TenantNotFoundError."""
        tenant = self._by_number.get(phone_number) if phone_number else None
        if tenant is None:
            raise TenantNotFoundError(phone_number or "")
        return tenant

    def by_tenant_id(self, tenant_id: str) -> TenantConfig:
        """Look a tenant up by its id (used when persisting finished calls)."""
        tenant = self._by_id.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        return tenant

    def __contains__(self, phone_number: object) -> bool:
        return phone_number in self._by_number

    def __len__(self) -> int:
        return len(self._by_number)

    @property
    def tenants(self) -> list[TenantConfig]:
        return list(self._by_number.values())


# ── Loaders ─────────────────────────────────────────────────────


def _parse_tenant(data: object, source: str) -> TenantConfig:
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Invalid tenant entry in {source}: expected an object, got {type(data).__name__}"
        )
    try:
        return TenantConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid tenant entry in {source}: {e}") from e


def load_tenants_jsonl(path: str | Path) -> TenantRegistry:
    """Load tenants from a JSONL file (one JSON object per line)."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Tenant file not found: {path}")

    tenants: list[TenantConfig] = []
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{path}:{lineno}: invalid JSON ({e.msg})") from e
        tenants.append(_parse_tenant(data, f"{path}:{lineno}"))

    log.info("Loaded %d tenant(s) from %s", len(tenants), path)
    return TenantRegistry(tenants)


def load_tenants_json(text: str) -> TenantRegistry:
    """Load tenants from an inline JSON list (``TENANTS_JSON``)."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"TENANTS_JSON is not valid JSON ({e.msg})") from e
    if not isinstance(raw, list):
        raise ConfigurationError("TENANTS_JSON must be a JSON list of tenant objects")

    tenants = [_parse_tenant(item, "TENANTS_JSON") for item in raw]
    log.info("Loaded %d tenant(s) from TENANTS_JSON", len(tenants))
    return TenantRegistry(tenants)


def load_registry(settings) -> TenantRegistry:
    """Build the registry from settings: inline JSON first, then the JSONL file."""
    if settings.tenants_json:
        return load_tenants_json(settings.tenants_json)
    return load_tenants_jsonl(settings.tenants_file)
