"""
Recipe catalog — static declaration of every artifact kind.

Pure data plus lookups, no I/O. Each entry names:

    config_key  the getssl.cfg key declaring its install location
    label       human-readable description
    file_name   default file name when built as an intermediate
    privacy     which permission profile it receives
    recipe      source kinds concatenated (in order) to produce it

Kinds with an empty recipe are leaves: certificate, key and CA chain
are copied from the ACME client's output; DH parameters are generated.
The catalog is validated when this module is imported.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any

from certdeploy.core.catalog.dag import validate_dag
from certdeploy.core.errors import DependencyCycle
from certdeploy.core.models.artifact import ArtifactKind, Privacy

logger = logging.getLogger(__name__)

K = ArtifactKind

_CATALOG: dict[ArtifactKind, dict[str, Any]] = {

    # ── Leaves: copied from the ACME client ─────────────────────

    K.CA_CERT: {
        "config_key": "CA_CERT_LOCATION",
        "label": "CA certificate chain",
        "file_name": "chain.crt",
        "privacy": Privacy.PUBLIC,
        "recipe": (),
    },
    K.DOMAIN_CERT: {
        "config_key": "DOMAIN_CERT_LOCATION",
        "label": "Domain certificate",
        "file_name": "domain.crt",
        "privacy": Privacy.PUBLIC,
        "recipe": (),
    },
    K.DOMAIN_KEY: {
        "config_key": "DOMAIN_KEY_LOCATION",
        "label": "Domain private key",
        "file_name": "domain.key",
        "privacy": Privacy.PRIVATE,
        "recipe": (),
    },

    # ── Leaf: generated ─────────────────────────────────────────

    K.DHPARAM: {
        "config_key": "DOMAIN_DH_LOCATION",
        "label": "DH parameters",
        "file_name": "dhparam.pem",
        "privacy": Privacy.PRIVATE,
        "recipe": (),
    },

    # ── Bundles ─────────────────────────────────────────────────

    K.DOMAIN_CHAIN: {
        "config_key": "DOMAIN_CHAIN_LOCATION",
        "label": "Certificate + CA chain",
        "file_name": "fullchain.crt",
        "privacy": Privacy.PUBLIC,
        "recipe": (K.DOMAIN_CERT, K.CA_CERT),
    },
    K.DOMAIN_PEM: {
        "config_key": "DOMAIN_PEM_LOCATION",
        "label": "Certificate + CA chain + key",
        "file_name": "domain.pem",
        "privacy": Privacy.PRIVATE,
        "recipe": (K.DOMAIN_CERT, K.CA_CERT, K.DOMAIN_KEY),
    },
    K.DH_PEM: {
        "config_key": "DOMAIN_DHPEM_LOCATION",
        "label": "Certificate + CA chain + key + DH parameters",
        "file_name": "domain-dh.pem",
        "privacy": Privacy.PRIVATE,
        "recipe": (K.DOMAIN_CERT, K.CA_CERT, K.DOMAIN_KEY, K.DHPARAM),
    },
    K.DH_KEY: {
        "config_key": "DOMAIN_DHKEY_LOCATION",
        "label": "Key + DH parameters",
        "file_name": "domain-dh.key",
        "privacy": Privacy.PRIVATE,
        "recipe": (K.DOMAIN_KEY, K.DHPARAM),
    },
    K.DH_CERT: {
        "config_key": "DOMAIN_DHCRT_LOCATION",
        "label": "Certificate + CA chain + DH parameters",
        "file_name": "domain-dh.crt",
        "privacy": Privacy.PRIVATE,
        "recipe": (K.DOMAIN_CERT, K.CA_CERT, K.DHPARAM),
    },
    K.CRT_KEY: {
        "config_key": "DOMAIN_CRTKEY_LOCATION",
        "label": "Certificate + key",
        "file_name": "domain-crtkey.pem",
        "privacy": Privacy.PRIVATE,
        "recipe": (K.DOMAIN_CERT, K.DOMAIN_KEY),
    },

    # ── Text reports ────────────────────────────────────────────

    K.TXT_CERT: {
        "config_key": "DOMAIN_TXTCERT_LOCATION",
        "label": "Certificate report",
        "file_name": "certificate.txt",
        "privacy": Privacy.PUBLIC,
        "recipe": (K.DOMAIN_CERT, K.CA_CERT),
    },
    K.TXT_KEY: {
        "config_key": "DOMAIN_TXTKEY_LOCATION",
        "label": "Key report",
        "file_name": "key.txt",
        "privacy": Privacy.PRIVATE,
        "recipe": (K.DOMAIN_KEY, K.DHPARAM),
    },
}

# Read-only view: kind → recipe
RECIPES: MappingProxyType[ArtifactKind, tuple[ArtifactKind, ...]] = MappingProxyType(
    {kind: entry["recipe"] for kind, entry in _CATALOG.items()}
)

# Leaves whose content is a copy of an ACME client output file
COPIED_KINDS = frozenset({K.CA_CERT, K.DOMAIN_CERT, K.DOMAIN_KEY})

_BY_CONFIG_KEY = {entry["config_key"]: kind for kind, entry in _CATALOG.items()}


def dependencies_of(kind: ArtifactKind) -> list[ArtifactKind]:
    """Source kinds *kind* is composed from, in concatenation order."""
    return list(RECIPES[kind])


def describe(kind: ArtifactKind) -> str:
    return _CATALOG[kind]["label"]


def file_name(kind: ArtifactKind) -> str:
    return _CATALOG[kind]["file_name"]


def config_key(kind: ArtifactKind) -> str:
    return _CATALOG[kind]["config_key"]


def privacy_of(kind: ArtifactKind) -> Privacy:
    return _CATALOG[kind]["privacy"]


def is_private(kind: ArtifactKind) -> bool:
    return privacy_of(kind) is Privacy.PRIVATE


def kind_for_key(key: str) -> ArtifactKind | None:
    """Map a getssl.cfg location key to its artifact kind."""
    return _BY_CONFIG_KEY.get(key)


def location_keys() -> list[str]:
    """All recognized ``*_LOCATION`` keys, in catalog order."""
    return [entry["config_key"] for entry in _CATALOG.values()]


def validate_catalog(
    recipes: dict[ArtifactKind, tuple[ArtifactKind, ...]] | MappingProxyType | None = None,
) -> None:
    """Reject a catalog that is incomplete or cyclic.

    Raises:
        DependencyCycle: On a self-reference, an unknown kind or a cycle.
    """
    graph = dict(RECIPES if recipes is None else recipes)

    missing = [k for k in ArtifactKind if k not in graph]
    if missing:
        raise DependencyCycle(
            f"Recipe catalog has no entry for: {', '.join(missing)}"
        )

    errors = validate_dag(graph)
    if errors:
        raise DependencyCycle(f"Invalid recipe catalog: {'; '.join(errors)}")


validate_catalog()
logger.debug("Recipe catalog loaded: %d kinds", len(RECIPES))
