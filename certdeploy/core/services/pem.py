"""
PEM helpers — parsing certificates and keys, DH parameter generation.

Thin wrappers over ``cryptography`` shared by the planner (certificate
and key must match), the builders (DH parameters) and the reports.
"""

from __future__ import annotations

import logging
import re

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dh

logger = logging.getLogger(__name__)

_CERT_BLOCK_RE = re.compile(
    rb"-----BEGIN CERTIFICATE-----.+?-----END CERTIFICATE-----",
    re.DOTALL,
)

DH_GENERATOR = 2


def load_certificates(data: bytes) -> list[x509.Certificate]:
    """All certificates in a PEM blob, in file order."""
    return [x509.load_pem_x509_certificate(block) for block in _CERT_BLOCK_RE.findall(data)]


def load_private_key(data: bytes):
    """Load an unencrypted PEM private key."""
    return serialization.load_pem_private_key(data, password=None)


def _public_der(public_key) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def keys_match(cert_pem: bytes, key_pem: bytes) -> bool:
    """Whether the first certificate in *cert_pem* was issued for *key_pem*.

    Compares the DER-encoded public keys, which covers RSA (modulus and
    exponent) and EC keys alike.
    """
    certs = load_certificates(cert_pem)
    if not certs:
        raise ValueError("no certificate found")
    key = load_private_key(key_pem)
    return _public_der(certs[0].public_key()) == _public_der(key.public_key())


def generate_dhparam(bits: int) -> bytes:
    """Generate DH parameters as a PKCS#3 PEM block.

    Slow for production sizes (seconds to minutes for 2048+ bits).
    """
    logger.info("Generating %d-bit DH parameters", bits)
    params = dh.generate_parameters(generator=DH_GENERATOR, key_size=bits)
    return params.parameter_bytes(
        serialization.Encoding.PEM,
        serialization.ParameterFormat.PKCS3,
    )


def load_dhparam(data: bytes) -> dh.DHParameters:
    return serialization.load_pem_parameters(data)
