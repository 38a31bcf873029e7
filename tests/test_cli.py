"""
Tests for CLI commands — install, plan, config check, issue, and global options.
"""

import json
from pathlib import Path

from click.testing import CliRunner

from conftest import DOMAIN
from certdeploy.main import cli


def _invoke(*args: str):
    return CliRunner().invoke(cli, list(args))


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        result = _invoke("--help")
        assert result.exit_code == 0
        assert "install ACME certificates" in result.output

    def test_version(self):
        result = _invoke("--version")
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestInstallCommand:
    def test_install_domain(self, make_domain, dest: Path, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"])
        result = _invoke("-w", str(getssl_dir), "install", DOMAIN)

        assert result.exit_code == 0, result.output
        assert "domain_cert" in result.output
        assert (dest / "example.crt").exists()

    def test_install_json(self, make_domain, dest: Path, getssl_dir: Path):
        make_domain([f"DOMAIN_CHAIN_LOCATION={dest}/fullchain.crt"])
        result = _invoke("-w", str(getssl_dir), "install", "--json", DOMAIN)

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data[0]["domain"] == DOMAIN
        assert data[0]["report"]["built"] == ["domain_chain"]

    def test_dry_run(self, make_domain, dest: Path, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"])
        result = _invoke("-w", str(getssl_dir), "install", "--dry-run", DOMAIN)

        assert result.exit_code == 0
        assert "dry run" in result.output
        assert not (dest / "example.crt").exists()

    def test_text_reports(self, make_domain, dest: Path, getssl_dir: Path):
        paths = make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"])
        result = _invoke("-w", str(getssl_dir), "install", "-t", "-q", DOMAIN)

        assert result.exit_code == 0
        assert (paths.install_dir / "certificate.txt").exists()

    def test_all(self, make_domain, dest: Path, getssl_dir: Path):
        for name in ("a.example", "b.example"):
            make_domain([f"DOMAIN_CERT_LOCATION={dest}/{name}.crt"], domain=name)
        result = _invoke("-w", str(getssl_dir), "install", "--all")

        assert result.exit_code == 0, result.output
        assert "a.example" in result.output
        assert "b.example" in result.output

    def test_error_exits_nonzero(self, make_domain, getssl_dir: Path):
        make_domain(["DOMAIN_CERT_LOCATION=ftp:host:/path"])
        result = _invoke("-w", str(getssl_dir), "install", DOMAIN)

        assert result.exit_code == 1
        assert f"{DOMAIN}: config:" in result.output

    def test_domain_or_all_required(self, getssl_dir: Path):
        assert _invoke("-w", str(getssl_dir), "install").exit_code == 2
        assert _invoke("-w", str(getssl_dir), "install", "--all", DOMAIN).exit_code == 2


class TestPlanCommand:
    def test_plan(self, make_domain, dest: Path, getssl_dir: Path):
        make_domain(["DOMAIN_PEM_LOCATION=ssh:host1:/etc/nginx/example.pem"])
        result = _invoke("-w", str(getssl_dir), "plan", DOMAIN)

        assert result.exit_code == 0, result.output
        assert "domain_pem" in result.output
        assert "ssh:host1:/etc/nginx/example.pem" in result.output

    def test_plan_json(self, make_domain, dest: Path, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"])
        result = _invoke("-w", str(getssl_dir), "plan", "--json", DOMAIN)

        data = json.loads(result.output)
        assert data["nodes"][0]["kind"] == "domain_cert"
        assert data["nodes"][0]["reason"] == "missing"

    def test_plan_missing_source(self, make_domain, dest: Path, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"], issued=False)
        result = _invoke("-w", str(getssl_dir), "plan", DOMAIN)

        assert result.exit_code == 1
        assert "precondition" in result.output


class TestConfigCheckCommand:
    def test_valid(self, make_domain, dest: Path, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"])
        result = _invoke("-w", str(getssl_dir), "config", "check", DOMAIN)

        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "DOMAIN_CERT_LOCATION" in result.output

    def test_invalid(self, make_domain, getssl_dir: Path):
        make_domain(["DOMAIN_CERT_LOCATION=ftp:host:/path"])
        result = _invoke("-w", str(getssl_dir), "config", "check", DOMAIN)

        assert result.exit_code == 1
        assert "Configuration errors" in result.output

    def test_json(self, make_domain, getssl_dir: Path):
        make_domain(["DOMAIN_CERT_LOCATION=ftp:host:/path"])
        result = _invoke("-w", str(getssl_dir), "config", "check", "--json", DOMAIN)

        assert result.exit_code == 1
        assert json.loads(result.output)["valid"] is False


class TestIssueCommand:
    def test_dry_run(self, make_domain, dest: Path, getssl_dir: Path):
        make_domain([f"DOMAIN_CERT_LOCATION={dest}/example.crt"])
        result = _invoke("-w", str(getssl_dir), "issue", "--dry-run", DOMAIN)

        assert result.exit_code == 0, result.output
        assert f"getssl -w {getssl_dir} {DOMAIN}" in result.output
        assert not (dest / "example.crt").exists()
