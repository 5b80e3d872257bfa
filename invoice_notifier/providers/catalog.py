"""Provider catalog backed by ``providers.json``."""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_SUPPORTED_PROVIDERS = frozenset({"eon"})

_LOGO_MIME_TYPES = {
    ".svg": "image/svg+xml",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
}


class ProviderDescriptor(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: str = ""
    abilities: list[str] = Field(default_factory=list)
    logo_path: str | None = Field(default=None, alias="logoPath")


class ProviderListing(BaseModel):
    id: str
    name: str
    description: str
    abilities: list[str]
    logo: str | None = None


def load_provider_catalog(path: str | Path) -> list[ProviderDescriptor]:
    """Read every descriptor from the catalog file.

    Raises ``OSError`` or ``ValueError`` when the file is missing or malformed;
    callers decide whether that is fatal.
    """
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return [ProviderDescriptor.model_validate(item) for item in raw["providers"]]


def load_logo(logo_path: str | Path, base_dir: str | Path = ".") -> str | None:
    path = Path(base_dir) / logo_path
    mime = _LOGO_MIME_TYPES.get(path.suffix.lower(), "image/svg+xml")
    try:
        encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    except OSError as exc:
        logger.warning("Failed to load logo %s: %s", logo_path, exc)
        return None
    return f"data:{mime};base64,{encoded}"


def list_providers(path: str | Path) -> list[ProviderListing]:
    """Catalog entries ready for the listing endpoint, logos inlined as data URIs."""
    base_dir = Path(path).parent
    return [
        ProviderListing(
            id=descriptor.id,
            name=descriptor.name,
            description=descriptor.description,
            abilities=descriptor.abilities,
            logo=load_logo(descriptor.logo_path, base_dir) if descriptor.logo_path else None,
        )
        for descriptor in load_provider_catalog(path)
    ]


def supported_provider_ids(path: str | Path) -> frozenset[str]:
    try:
        return frozenset(d.id.lower() for d in load_provider_catalog(path))
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.warning("Failed to load %s, using default providers: %s", path, exc)
        return DEFAULT_SUPPORTED_PROVIDERS
