"""
Tests for the use cases — install (single and all domains), reload hook,
audit entries, config check, and issue.
"""

import threading
from pathlib import Path

from cryptography.hazmat.primitives import serialization

from conftest import DOMAIN, age, touch_future
from certdeploy.adapters.mock import MockAdapter
from certdeploy.adapters.registry import AdapterRegistry
from certdeploy.core.models.settings import Settings
from certdeploy.core.persistence.audit import AuditWriter
from certdeploy.core.use_cases.config_check import check_config
from certdeploy.core.use_cases.install import (
    generate_operation_id,
    install_all,
    install_domain,
)
from certdeploy.core.use_cases.issue import acme_command, issue_domain

RELOAD = 'RELOAD_CMD="systemctl reload nginx"'


class TestInstallDomain:
    def test_success(self, make_domain, dest: Path, registry: AdapterRegistry):
        paths = make_domain([f"DOMAIN_CHAIN_LOCATION={dest}/fullchain.crt"])
        result = install_domain(DOMAIN, paths.workdir, registry=registry)

        assert result.ok
        assert result.report.built == ["domain_chain"]
        assert (dest / "fullchain.crt").exists()
        assert result.to_dict()["ok"] is True

    def test_reload_runs_once_when_changed(self, make_domain, dest: Path, registry):
        paths = make_domain([
            f"DOMAIN_CERT_LOCATION={dest}/example.crt",
            f"DOMAIN_KEY_LOCATION={dest}/example.key",
            RELOAD,
        ])
        result = install_domain(DOMAIN, paths.workdir, registry=registry)

        shell: MockAdapter = registry.get("shell")
        assert result.reloaded
        assert shell.action_ids == [f"{DOMAIN}:reload"]
        assert shell.call_log[0].action.params["command"] == "systemctl reload nginx"

    def test_no_reload_when_nothing_changed(self, make_domain, dest: Path, registry):
        paths = make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt", RELOAD])
        install_domain(DOMAIN, paths.workdir, registry=registry)
        second = install_domain(DOMAIN, paths.workdir, registry=registry)

        assert second.ok
        assert not second.reloaded
        assert registry.get("shell").call_count == 1

    def test_no_reload_when_forced(self, make_domain, dest: Path, registry):
        paths = make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt", RELOAD])
        result = install_domain(DOMAIN, paths.workdir, registry=registry, force=True)

        assert result.report.built == ["domain_cert"]
        assert not result.reloaded
        assert registry.get("shell").call_count == 0

    def test_no_reload_on_dry_run(self, make_domain, dest: Path, registry):
        paths = make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt", RELOAD])
        result = install_domain(DOMAIN, paths.workdir, registry=registry, dry_run=True)

        assert result.ok
        assert not result.reloaded
        assert registry.get("shell").call_count == 0

    def test_reload_failure(self, make_domain, dest: Path, registry):
        paths = make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt", RELOAD])
        registry.get("shell").set_failure(f"{DOMAIN}:reload", "Job for nginx.service failed")

        result = install_domain(DOMAIN, paths.workdir, registry=registry)

        assert not result.ok
        assert result.error == f"{DOMAIN}: reload: Job for nginx.service failed"
        assert result.error_type == "ReloadError"
        assert (dest / "example.crt").exists()

    def test_reload_after_renewal(self, make_domain, dest: Path, registry):
        paths = make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt", RELOAD])
        install_domain(DOMAIN, paths.workdir, registry=registry)
        touch_future(paths.cert_source)
        result = install_domain(DOMAIN, paths.workdir, registry=registry)

        assert result.reloaded
        assert registry.get("shell").call_count == 2

    def test_configuration_error(self, make_domain, registry):
        paths = make_domain(["DOMAIN_CERT_LOCATION=ftp:host:/path"])
        result = install_domain(DOMAIN, paths.workdir, registry=registry)

        assert not result.ok
        assert result.error.startswith(f"{DOMAIN}: config: DOMAIN_CERT_LOCATION: Unsupported")
        assert result.error_type == "ConfigurationError"

    def test_delivery_error_keeps_partial_report(self, make_domain, dest: Path, registry):
        paths = make_domain([
            f"DOMAIN_CERT_LOCATION={dest}/example.crt",
            "DOMAIN_PEM_LOCATION=ssh:host1:/etc/nginx/example.pem",
            RELOAD,
        ])
        registry.get("ssh").set_failure(f"{DOMAIN}:domain_pem:copy", "lost connection")
        result = install_domain(DOMAIN, paths.workdir, registry=registry)

        assert result.error == f"{DOMAIN}: deliver domain_pem: lost connection"
        assert result.report.built == ["domain_cert"]
        assert registry.get("shell").call_count == 0

    def test_encrypted_key_is_a_precondition_error(self, make_domain, dest: Path, pki, registry):
        key = serialization.load_pem_private_key(pki.key_pem, password=None)
        encrypted = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.BestAvailableEncryption(b"secret"),
        )
        paths = make_domain(
            [f"DOMAIN_CERT_LOCATION={dest}/example.crt", f"DOMAIN_KEY_LOCATION={dest}/example.key"],
            key_pem=encrypted,
        )

        result = install_domain(DOMAIN, paths.workdir, registry=registry)

        assert result.error_type == "PreconditionError"
        assert result.error.startswith(f"{DOMAIN}: precondition: Cannot compare certificate and key")
        assert list(dest.iterdir()) == []

    def test_malformed_chain_fails_the_report(self, make_domain, dest: Path, registry):
        paths = make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"])
        paths.chain_source.write_bytes(
            b"-----BEGIN CERTIFICATE-----\nbm90IGEgY2VydGlmaWNhdGU=\n-----END CERTIFICATE-----\n"
        )
        age(paths.chain_source)

        result = install_domain(DOMAIN, paths.workdir, registry=registry, include_text=True)

        assert result.error_type == "DeliveryError"
        assert result.error.startswith(f"{DOMAIN}: write txt_cert: ")


class TestAudit:
    def test_entry_written(self, make_domain, dest: Path, registry):
        paths = make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt", RELOAD])
        install_domain(DOMAIN, paths.workdir, registry=registry)

        entries = AuditWriter(workdir=paths.workdir).read_all()
        assert len(entries) == 1
        entry = entries[0]
        assert entry.domain == DOMAIN
        assert entry.operation_type == "install"
        assert entry.status == "ok"
        assert entry.built == ["domain_cert"]
        assert entry.reloaded
        assert entry.operation_id.startswith("op-")

    def test_failure_recorded(self, make_domain, registry):
        paths = make_domain(["DOMAIN_CERT_LOCATION=ftp:host:/path"])
        install_domain(DOMAIN, paths.workdir, registry=registry)

        entry = AuditWriter(workdir=paths.workdir).read_all()[0]
        assert entry.status == "failed"
        assert "Unsupported" in entry.error

    def test_dry_run_not_recorded(self, make_domain, dest: Path, registry):
        paths = make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"])
        install_domain(DOMAIN, paths.workdir, registry=registry, dry_run=True)

        assert AuditWriter(workdir=paths.workdir).read_all() == []

    def test_operation_ids_unique(self):
        assert generate_operation_id() != generate_operation_id()


class TestInstallAll:
    def test_every_domain(self, make_domain, dest: Path, registry):
        for name in ("a.example", "b.example", "c.example"):
            make_domain([f"DOMAIN_CHAIN_LOCATION={dest}/{name}.crt"], domain=name)

        results = install_all(dest.parent / "getssl", registry=registry, settings=Settings())

        assert [r.domain for r in results] == ["a.example", "b.example", "c.example"]
        assert all(r.ok for r in results)
        assert sorted(p.name for p in dest.iterdir()) == ["a.example.crt", "b.example.crt", "c.example.crt"]

    def test_failure_is_isolated(self, make_domain, dest: Path, registry, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/good.crt"], domain="good.example")
        make_domain(["DOMAIN_CERT_LOCATION=ftp:h:/p"], domain="bad.example")

        results = {r.domain: r for r in install_all(getssl_dir, registry=registry)}

        assert results["good.example"].ok
        assert not results["bad.example"].ok
        assert results["bad.example"].error.startswith("bad.example: config:")

    def test_undecodable_config_is_isolated(self, make_domain, dest: Path, registry, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/good.crt"], domain="good.example")
        bad = make_domain([], domain="bad.example")
        bad.domain_config.write_bytes(b"DOMAIN_CERT_LOCATION=/x\xff\xfe\n")

        results = {r.domain: r for r in install_all(getssl_dir, registry=registry)}

        assert results["good.example"].ok
        assert (dest / "good.crt").exists()
        assert results["bad.example"].error_type == "ConfigurationError"
        assert results["bad.example"].error.startswith("bad.example: config: Cannot read")

    def test_workers_named_after_domains(self, make_domain, dest: Path, getssl_dir: Path):
        seen: list[tuple[str, str]] = []

        class Recording(MockAdapter):
            def execute(self, context):
                seen.append((context.domain, threading.current_thread().name))
                return super().execute(context)

        registry = AdapterRegistry()
        registry.register(Recording(adapter_name="shell"))
        for name in ("a.example", "b.example"):
            make_domain([f"DOMAIN_CERT_LOCATION={dest}/{name}.crt", RELOAD], domain=name)

        install_all(getssl_dir, registry=registry, max_workers=2)

        assert sorted(seen) == [("a.example", "a.example"), ("b.example", "b.example")]

    def test_one_operation_id(self, make_domain, dest: Path, registry, getssl_dir: Path):
        for name in ("a.example", "b.example"):
            make_domain([f"DOMAIN_CERT_LOCATION={dest}/{name}.crt"], domain=name)
        install_all(getssl_dir, registry=registry)

        entries = AuditWriter(workdir=getssl_dir).read_all()
        assert len(entries) == 2
        assert len({e.operation_id for e in entries}) == 1

    def test_empty_workdir(self, getssl_dir: Path, registry):
        assert install_all(getssl_dir, registry=registry) == []


class TestConfigCheck:
    def test_valid(self, make_domain, dest: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt", RELOAD])
        result = check_config(DOMAIN, dest.parent / "getssl")

        assert result.valid
        assert result.errors == []
        assert result.to_dict()["targets"] == {"DOMAIN_CERT_LOCATION": str(dest / "example.crt")}

    def test_invalid(self, make_domain, getssl_dir: Path):
        make_domain(["DOMAIN_PEM_LOCATION=ftp:host:/path"])
        result = check_config(DOMAIN, getssl_dir)

        assert not result.valid
        assert "Unsupported" in result.errors[0]

    def test_unavailable_delivery_is_a_warning(self, make_domain, getssl_dir: Path):
        make_domain(["DOMAIN_PEM_LOCATION=ssh:host1:/etc/nginx/example.pem"])
        registry = AdapterRegistry()
        registry.register(MockAdapter(adapter_name="ssh", available=False))

        result = check_config(DOMAIN, getssl_dir, registry=registry)

        assert result.valid
        assert "'ssh' delivery unavailable: its tools are not on PATH" in result.warnings

    def test_not_issued_is_a_warning(self, make_domain, dest: Path, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"], issued=False)
        result = check_config(DOMAIN, getssl_dir)

        assert result.valid
        assert any("Not issued yet" in w for w in result.warnings)


class TestIssue:
    def test_acme_command(self, tmp_path: Path):
        assert acme_command("example.com", tmp_path, Settings()) == f"getssl -w {tmp_path} example.com"

    def test_acme_command_as_user(self, tmp_path: Path):
        settings = Settings(acme_user="getssl", acme_command="/opt/getssl/getssl -q")
        command = acme_command("example.com", tmp_path, settings, force=True)
        assert command == f"sudo -u getssl -H /opt/getssl/getssl -q -w {tmp_path} -f example.com"

    def test_issue_then_install(self, make_domain, dest: Path, registry, getssl_dir: Path):
        challenge_dir = dest.parent / "acme-challenge"
        challenge_dir.mkdir()
        challenge_dir.chmod(0o755)
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"])
        settings = Settings(challenge_dirs=[str(challenge_dir)])

        result = issue_domain(DOMAIN, getssl_dir, registry=registry, settings=settings)

        assert result.ok
        assert registry.get("shell").action_ids == [f"{DOMAIN}:issue"]
        assert result.install.report.built == ["domain_cert"]
        assert (challenge_dir.stat().st_mode & 0o777) == 0o755

    def test_forced_renewal_still_reloads(self, make_domain, dest: Path, registry, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt", RELOAD])

        result = issue_domain(DOMAIN, getssl_dir, registry=registry, settings=Settings(), force=True)

        assert result.ok
        assert result.command.endswith(f"-f {DOMAIN}")
        assert result.install.reloaded
        assert registry.get("shell").action_ids == [f"{DOMAIN}:issue", f"{DOMAIN}:reload"]

    def test_acme_failure_skips_install(self, make_domain, dest: Path, registry, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"])
        registry.get("shell").set_failure(f"{DOMAIN}:issue", "Verification failed")

        result = issue_domain(DOMAIN, getssl_dir, registry=registry, settings=Settings())

        assert not result.ok
        assert result.error == f"{DOMAIN}: issue: Verification failed"
        assert result.install is None
        assert not (dest / "example.crt").exists()

    def test_missing_challenge_dir(self, make_domain, tmp_path: Path, registry, getssl_dir: Path):
        make_domain(["DOMAIN_CERT_LOCATION=/srv/example.crt"])
        settings = Settings(challenge_dirs=[str(tmp_path / "missing")])

        result = issue_domain(DOMAIN, getssl_dir, registry=registry, settings=settings)

        assert result.error.startswith(f"{DOMAIN}: challenge: ")
        assert registry.get("shell").call_count == 0

    def test_dry_run(self, make_domain, dest: Path, registry, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"])
        result = issue_domain(DOMAIN, getssl_dir, registry=registry, settings=Settings(), dry_run=True)

        assert result.ok
        assert registry.get("shell").call_count == 0
        assert result.install.report.dry_run
