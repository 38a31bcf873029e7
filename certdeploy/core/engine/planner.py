"""
Plan builder — decide what to build, in which order, and where it goes.

Flow:
    resolve targets → closure over recipes → topological order
        → output/source paths → preconditions → freshness → delivery steps

A plan is derived fresh on every run and never persisted. Freshness is
make-style: an artifact is rebuilt when it is missing, when it is
strictly older than one of its direct sources, or when one of its
dependencies is being rebuilt. Equal timestamps count as fresh.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from certdeploy.core.catalog.dag import topological_order
from certdeploy.core.catalog.recipes import (
    COPIED_KINDS,
    RECIPES,
    dependencies_of,
    file_name,
    privacy_of,
)
from certdeploy.core.config.paths import WorkPaths
from certdeploy.core.config.targets import resolve_targets
from certdeploy.core.errors import PreconditionError
from certdeploy.core.models.action import Action
from certdeploy.core.models.artifact import ArtifactKind, PermissionProfile
from certdeploy.core.models.domain import DomainConfig
from certdeploy.core.models.settings import Settings
from certdeploy.core.models.target import (
    ContainerTarget,
    LocalTarget,
    RemoteTarget,
    ResolvedTarget,
)
from certdeploy.core.services.pem import keys_match

logger = logging.getLogger(__name__)

K = ArtifactKind


@dataclass
class PlanNode:
    """One artifact in the plan."""

    kind: ArtifactKind
    output: Path                         # file the artifact is built into
    sources: list[Path]                  # direct sources, for freshness
    depends_on: list[ArtifactKind]       # recipe dependencies
    profile: PermissionProfile
    target: ResolvedTarget | None = None
    delivery: list[Action] = field(default_factory=list)
    rebuild: bool = False
    reason: str = ""
    is_source: bool = False              # output is the ACME client's own file

    @property
    def declared(self) -> bool:
        return self.target is not None

    @property
    def is_remote(self) -> bool:
        return self.target is not None and self.target.is_remote

    def to_dict(self) -> dict:
        return {
            "kind": str(self.kind),
            "output": str(self.output),
            "sources": [str(s) for s in self.sources],
            "depends_on": [str(d) for d in self.depends_on],
            "mode": self.profile.octal,
            "ownership": self.profile.ownership,
            "privacy": str(self.profile.privacy),
            "target": str(self.target.target) if self.target else None,
            "target_class": str(self.target.target_class) if self.target else None,
            "delivery": [a.id for a in self.delivery],
            "rebuild": self.rebuild,
            "reason": self.reason,
        }


@dataclass
class BuildPlan:
    """Ordered build/install plan for one domain."""

    domain: str
    nodes: list[PlanNode] = field(default_factory=list)
    dhparam_len: int = 2048
    force: bool = False
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def kinds(self) -> list[ArtifactKind]:
        return [n.kind for n in self.nodes]

    def get(self, kind: ArtifactKind) -> PlanNode | None:
        for node in self.nodes:
            if node.kind == kind:
                return node
        return None

    def __contains__(self, kind: object) -> bool:
        return any(n.kind == kind for n in self.nodes)

    @property
    def to_rebuild(self) -> list[PlanNode]:
        return [n for n in self.nodes if n.rebuild]

    @property
    def is_noop(self) -> bool:
        return not self.to_rebuild

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "force": self.force,
            "created_at": self.created_at,
            "rebuild": len(self.to_rebuild),
            "nodes": [n.to_dict() for n in self.nodes],
        }


def dependency_closure(kinds: list[ArtifactKind]) -> list[ArtifactKind]:
    """*kinds* plus every transitive recipe dependency, each once."""
    seen: dict[ArtifactKind, None] = {}

    def _visit(kind: ArtifactKind) -> None:
        if kind in seen:
            return
        for dep in dependencies_of(kind):
            _visit(dep)
        seen[kind] = None

    for kind in kinds:
        _visit(kind)
    return list(seen)


def build_plan(
    config: DomainConfig,
    paths: WorkPaths,
    settings: Settings | None = None,
    *,
    force: bool = False,
    include_text: bool = False,
) -> BuildPlan:
    """Produce the BuildPlan for one domain.

    Args:
        config: The domain's configuration.
        paths: Work directory layout for the domain.
        settings: Installer settings (permission profiles).
        force: Rebuild everything (reused DH parameters excepted).
        include_text: Also build both text reports, even if no location
            is configured for them.

    Raises:
        ConfigurationError: A target cannot be resolved.
        PreconditionError: A required source file is missing or the
            certificate does not match the key.
        DependencyCycle: The recipe graph has a cycle.
    """
    settings = settings or Settings()
    targets = resolve_targets(config, paths)

    wanted = list(targets)
    if include_text:
        wanted += [k for k in (K.TXT_CERT, K.TXT_KEY) if k not in targets]

    closure = dependency_closure(wanted)
    order = topological_order(RECIPES, closure)

    plan = BuildPlan(domain=config.domain, dhparam_len=config.dhparam_len, force=force)
    by_kind: dict[ArtifactKind, PlanNode] = {}

    for kind in order:
        node = _make_node(kind, targets.get(kind), by_kind, paths, settings)
        by_kind[kind] = node
        plan.nodes.append(node)

    _check_preconditions(plan, paths)

    for node in plan.nodes:
        node.rebuild, node.reason = _freshness(node, by_kind, config, force)
        if node.target is not None:
            node.delivery = _delivery_actions(config.domain, node, node.target)

    logger.info(
        "%s: plan has %d artifact(s), %d to rebuild",
        config.domain, len(plan.nodes), len(plan.to_rebuild),
    )
    return plan


# ── Node construction ───────────────────────────────────────────


_SOURCE_ATTR = {
    K.CA_CERT: "chain_source",
    K.DOMAIN_CERT: "cert_source",
    K.DOMAIN_KEY: "key_source",
}


def _make_node(
    kind: ArtifactKind,
    target: ResolvedTarget | None,
    built: dict[ArtifactKind, PlanNode],
    paths: WorkPaths,
    settings: Settings,
) -> PlanNode:
    deps = dependencies_of(kind)
    profile = settings.profile_for(privacy_of(kind))

    if kind in COPIED_KINDS:
        source = getattr(paths, _SOURCE_ATTR[kind])
        if target is None:
            # Nothing to install: dependents read the ACME output directly
            return PlanNode(
                kind=kind, output=source, sources=[], depends_on=deps,
                profile=profile, is_source=True,
            )
        sources = [source]
    elif kind is K.DHPARAM:
        # Regenerated when the certificate or key is renewed
        sources = [paths.cert_source, paths.key_source]
    else:
        sources = [built[dep].output for dep in deps]

    output = target.staging_path if target else paths.install_dir / file_name(kind)
    return PlanNode(
        kind=kind, output=output, sources=sources, depends_on=deps,
        profile=profile, target=target,
    )


# ── Preconditions ───────────────────────────────────────────────


def _check_preconditions(plan: BuildPlan, paths: WorkPaths) -> None:
    """Fail before anything is built if an ACME output is missing or inconsistent."""
    required: dict[Path, None] = {}
    for node in plan.nodes:
        if node.kind in COPIED_KINDS:
            required[getattr(paths, _SOURCE_ATTR[node.kind])] = None
        elif node.kind is K.DHPARAM:
            required[paths.cert_source] = None
            required[paths.key_source] = None

    missing = [p for p in required if not p.is_file()]
    if missing:
        raise PreconditionError(
            f"Missing source file(s): {', '.join(str(p) for p in missing)}",
            domain=plan.domain,
        )

    if paths.cert_source in required and paths.key_source in required:
        try:
            match = keys_match(paths.cert_source.read_bytes(), paths.key_source.read_bytes())
        except (OSError, ValueError, TypeError) as e:
            raise PreconditionError(
                f"Cannot compare certificate and key: {e}", domain=plan.domain,
            ) from e
        if not match:
            raise PreconditionError(
                f"{paths.cert_source.name} does not match {paths.key_source.name}",
                domain=plan.domain,
            )


# ── Freshness ───────────────────────────────────────────────────


def _mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except FileNotFoundError:
        return None


def _freshness(
    node: PlanNode,
    built: dict[ArtifactKind, PlanNode],
    config: DomainConfig,
    force: bool,
) -> tuple[bool, str]:
    """(rebuild?, reason) for one node. Dependencies are decided first."""
    if node.is_source:
        return False, "ACME client output"

    output_mtime = _mtime(node.output)

    if node.kind is K.DHPARAM:
        if not config.reuse_dhparam:
            return True, "REUSE_DHPARAM is not true"
        if output_mtime is None:
            return True, "missing"
        # Reused parameters survive --force; only a renewal replaces them
    else:
        if force:
            return True, "forced"
        if output_mtime is None:
            return True, "missing"

    for dep in node.depends_on:
        if built[dep].rebuild:
            return True, f"{dep} is rebuilt"

    for source in node.sources:
        source_mtime = _mtime(source)
        if source_mtime is not None and output_mtime < source_mtime:
            return True, f"older than {source.name}"

    return False, "up to date"


# ── Delivery ────────────────────────────────────────────────────


def _delivery_actions(
    domain: str, node: PlanNode, resolved: ResolvedTarget,
) -> list[Action]:
    """Copy + permission steps for a remote or container target."""
    target = resolved.target
    if isinstance(target, LocalTarget):
        return []

    prefix = f"{domain}:{node.kind}"
    perms = {
        "path": target.path,
        "mode": node.profile.octal,
        "owner": node.profile.ownership,
    }

    if isinstance(target, RemoteTarget):
        adapter, where = "ssh", {"host": target.host}
        label = target.host
    elif isinstance(target, ContainerTarget):
        adapter, where = "docker", {"container": target.container}
        label = target.container
    else:  # pragma: no cover (closed union)
        raise TypeError(f"Unknown target type: {type(target).__name__}")

    return [
        Action(
            id=f"{prefix}:copy",
            name=f"copy {node.kind} to {label}:{target.path}",
            adapter=adapter,
            domain=domain,
            artifact=str(node.kind),
            params={
                "operation": "copy",
                **where,
                "source": str(node.output),
                "dest": target.path,
            },
        ),
        Action(
            id=f"{prefix}:perms",
            name=f"set {node.profile.octal} on {label}:{target.path}",
            adapter=adapter,
            domain=domain,
            artifact=str(node.kind),
            params={"operation": "chmod", **where, **perms},
        ),
    ]
