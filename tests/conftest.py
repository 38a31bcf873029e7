"""
Shared test fixtures and configuration.

Certificates and keys are generated once per session with
``cryptography``; DH parameter generation is replaced by a small
pre-generated set so builds stay fast.
"""

import os
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import dh, ec
from cryptography.x509.oid import NameOID

from certdeploy.adapters.mock import MockAdapter
from certdeploy.adapters.registry import AdapterRegistry
from certdeploy.core.config.paths import WorkPaths
from certdeploy.core.services import pem

DOMAIN = "example.com"

# Sources are written this many seconds in the past
SOURCE_AGE = 3600


def _key_pem(key) -> bytes:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def _certificate(subject: str, key, issuer: str, issuer_key, *, ca: bool, sans=()) -> bytes:
    now = datetime.now(UTC)
    builder = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, subject)]))
        .issuer_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer)]))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=90))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    if sans:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(name) for name in sans]),
            critical=False,
        )
    cert = builder.sign(issuer_key, hashes.SHA256())
    return cert.public_bytes(serialization.Encoding.PEM)


@pytest.fixture(scope="session")
def pki() -> SimpleNamespace:
    """A CA, a leaf certificate for DOMAIN, its key, and an unrelated key."""
    ca_key = ec.generate_private_key(ec.SECP256R1())
    leaf_key = ec.generate_private_key(ec.SECP256R1())
    other_key = ec.generate_private_key(ec.SECP256R1())

    return SimpleNamespace(
        ca_pem=_certificate("Test CA", ca_key, "Test CA", ca_key, ca=True),
        cert_pem=_certificate(
            DOMAIN, leaf_key, "Test CA", ca_key, ca=False, sans=(DOMAIN, f"www.{DOMAIN}"),
        ),
        key_pem=_key_pem(leaf_key),
        other_key_pem=_key_pem(other_key),
    )


@pytest.fixture(scope="session")
def dhparam_pem() -> bytes:
    params = dh.generate_parameters(generator=2, key_size=512)
    return params.parameter_bytes(
        serialization.Encoding.PEM,
        serialization.ParameterFormat.PKCS3,
    )


@pytest.fixture(autouse=True)
def fast_dhparam(monkeypatch, dhparam_pem) -> list[int]:
    """Replace DH generation; the returned list records requested sizes."""
    calls: list[int] = []

    def _generate(bits: int) -> bytes:
        calls.append(bits)
        return dhparam_pem

    monkeypatch.setattr(pem, "generate_dhparam", _generate)
    return calls


@pytest.fixture
def getssl_dir(tmp_path: Path) -> Path:
    """An empty getssl work directory."""
    workdir = tmp_path / "getssl"
    workdir.mkdir()
    return workdir


@pytest.fixture
def dest(tmp_path: Path) -> Path:
    """Directory standing in for /etc/ssl."""
    path = tmp_path / "dest"
    path.mkdir()
    return path


def age(path: Path, seconds: int = SOURCE_AGE) -> None:
    """Set *path*'s mtime *seconds* in the past."""
    then = time.time() - seconds
    os.utime(path, (then, then))


def touch_future(path: Path, seconds: int = 60) -> None:
    """Set *path*'s mtime *seconds* in the future."""
    later = time.time() + seconds
    os.utime(path, (later, later))


@pytest.fixture
def make_domain(getssl_dir: Path, pki: SimpleNamespace):
    """Factory: write a domain's getssl.cfg and ACME output files.

    Usage::

        paths = make_domain(["DOMAIN_CERT_LOCATION=/x/cert.pem"])
    """

    def _make(
        lines: list[str],
        domain: str = DOMAIN,
        *,
        key_pem: bytes | None = None,
        issued: bool = True,
    ) -> WorkPaths:
        paths = WorkPaths.for_domain(getssl_dir, domain)
        paths.domain_dir.mkdir(parents=True, exist_ok=True)
        paths.domain_config.write_text("\n".join(lines) + "\n")

        if issued:
            paths.cert_source.write_bytes(pki.cert_pem)
            paths.key_source.write_bytes(key_pem or pki.key_pem)
            paths.chain_source.write_bytes(pki.ca_pem)
            for source in (paths.cert_source, paths.key_source, paths.chain_source):
                age(source)
        return paths

    return _make


@pytest.fixture
def registry() -> AdapterRegistry:
    """Registry whose shell, ssh and docker adapters are mocks."""
    reg = AdapterRegistry()
    for name in ("shell", "ssh", "docker"):
        reg.register(MockAdapter(adapter_name=name))
    return reg
