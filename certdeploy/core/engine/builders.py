"""
Artifact builders — produce the bytes of one plan node.

    copied leaves   → the ACME client's file, verbatim
    dhparam         → freshly generated DH parameters
    bundles         → concatenation of the recipe's sources, in order
    text reports    → decoded certificate / key material
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from certdeploy.core.catalog.recipes import COPIED_KINDS
from certdeploy.core.engine.planner import BuildPlan, PlanNode
from certdeploy.core.models.artifact import ArtifactKind
from certdeploy.core.services import pem, reports

logger = logging.getLogger(__name__)

K = ArtifactKind


def concatenate(parts: list[bytes]) -> bytes:
    """Join PEM blobs, making sure each one ends with a newline."""
    out = bytearray()
    for part in parts:
        out += part
        if part and not part.endswith(b"\n"):
            out += b"\n"
    return bytes(out)


def build_content(
    node: PlanNode,
    plan: BuildPlan,
    generated_at: datetime | None = None,
) -> bytes:
    """Bytes for *node*. Its dependencies must already be built."""
    if node.kind in COPIED_KINDS:
        return node.sources[0].read_bytes()

    if node.kind is K.DHPARAM:
        return pem.generate_dhparam(plan.dhparam_len)

    parts = {dep: _output_of(plan, dep) for dep in node.depends_on}

    if node.kind is K.TXT_CERT:
        when = generated_at or datetime.now(UTC)
        text = reports.certificate_report(parts[K.DOMAIN_CERT], parts[K.CA_CERT], when)
        return text.encode("utf-8")

    if node.kind is K.TXT_KEY:
        when = generated_at or datetime.now(UTC)
        text = reports.key_report(parts[K.DOMAIN_KEY], parts[K.DHPARAM], when)
        return text.encode("utf-8")

    logger.debug("Concatenating %s from %s", node.kind, ", ".join(node.depends_on))
    return concatenate([parts[dep] for dep in node.depends_on])


def _output_of(plan: BuildPlan, kind: ArtifactKind) -> bytes:
    node = plan.get(kind)
    if node is None:  # pragma: no cover (plan is dependency-closed)
        raise KeyError(f"{kind} is not part of the plan")
    return node.output.read_bytes()
