"""
Text reports — human-readable decode of the installed material.

Two reports exist: one for the certificate and its CA chain, one for
the private key and the DH parameters. Each starts with a generation
timestamp header, followed by one section per decoded object.
"""

from __future__ import annotations

import textwrap
from datetime import datetime

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from certdeploy.core.services.pem import load_certificates, load_dhparam, load_private_key

_BYTES_PER_LINE = 15
_INDENT = "    "


def _header(title: str, generated_at: datetime) -> list[str]:
    return [
        f"# {title}",
        f"# Generated: {generated_at.isoformat(timespec='seconds')}",
        "",
    ]


def _hex_block(value: int) -> str:
    """Colon-separated hex, wrapped like ``openssl -text`` output."""
    raw = value.to_bytes((value.bit_length() + 7) // 8 or 1, "big")
    if raw[0] & 0x80:
        raw = b"\x00" + raw
    pairs = [f"{b:02x}" for b in raw]
    lines = [
        ":".join(pairs[i:i + _BYTES_PER_LINE])
        for i in range(0, len(pairs), _BYTES_PER_LINE)
    ]
    return textwrap.indent("\n".join(lines), _INDENT * 2)


def _sans(cert: x509.Certificate) -> list[str]:
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return ext.value.get_values_for_type(x509.DNSName)


def describe_certificate(cert: x509.Certificate) -> list[str]:
    lines = [
        f"Subject:     {cert.subject.rfc4514_string()}",
        f"Issuer:      {cert.issuer.rfc4514_string()}",
        f"Serial:      {cert.serial_number:x}",
        f"Not before:  {cert.not_valid_before_utc.isoformat()}",
        f"Not after:   {cert.not_valid_after_utc.isoformat()}",
    ]
    sans = _sans(cert)
    if sans:
        lines.append(f"DNS names:   {', '.join(sans)}")
    lines.append(f"SHA-256:     {cert.fingerprint(hashes.SHA256()).hex(':')}")
    return lines


def describe_private_key(key) -> list[str]:
    if isinstance(key, rsa.RSAPrivateKey):
        numbers = key.public_key().public_numbers()
        return [
            f"Private key: RSA ({key.key_size} bit)",
            f"{_INDENT}Modulus:",
            _hex_block(numbers.n),
            f"{_INDENT}Exponent: {numbers.e} (0x{numbers.e:x})",
        ]
    if isinstance(key, ec.EllipticCurvePrivateKey):
        numbers = key.public_key().public_numbers()
        return [
            f"Private key: EC {key.curve.name} ({key.key_size} bit)",
            f"{_INDENT}Public X:",
            _hex_block(numbers.x),
            f"{_INDENT}Public Y:",
            _hex_block(numbers.y),
        ]
    return [f"Private key: {type(key).__name__}"]


def describe_dhparam(data: bytes) -> list[str]:
    numbers = load_dhparam(data).parameter_numbers()
    return [
        f"DH parameters: ({numbers.p.bit_length()} bit)",
        f"{_INDENT}Generator: {numbers.g}",
        f"{_INDENT}Prime:",
        _hex_block(numbers.p),
    ]


def certificate_report(cert_pem: bytes, chain_pem: bytes, generated_at: datetime) -> str:
    """Report on the domain certificate followed by each CA certificate."""
    lines = _header("Certificate report", generated_at)

    for cert in load_certificates(cert_pem):
        lines.append("== Domain certificate ==")
        lines.extend(describe_certificate(cert))
        lines.append("")

    for i, cert in enumerate(load_certificates(chain_pem), start=1):
        lines.append(f"== CA certificate {i} ==")
        lines.extend(describe_certificate(cert))
        lines.append("")

    return "\n".join(lines)


def key_report(key_pem: bytes, dh_pem: bytes | None, generated_at: datetime) -> str:
    """Report on the private key and, when available, the DH parameters."""
    lines = _header("Key report", generated_at)

    lines.append("== Private key ==")
    lines.extend(describe_private_key(load_private_key(key_pem)))
    lines.append("")

    if dh_pem:
        lines.append("== DH parameters ==")
        lines.extend(describe_dhparam(dh_pem))
        lines.append("")

    return "\n".join(lines)
