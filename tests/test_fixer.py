"""Tests for file transactions and the auto fixer."""

import json
from unittest.mock import Mock

import pytest

from node_shield.core.errors import FixApplicationError
from node_shield.core.matcher import AdvisoryRecord, VulnerabilityMatcher
from node_shield.core.parsers import PackageManifestParser
from node_shield.fix import AutoFixer, CommandResult, NpmInstaller
from node_shield.utils.transaction import file_transaction


def npm_result(exit_code=0, stderr=""):
    return CommandResult(command=["npm", "install"], cwd=".", exit_code=exit_code, stdout="", stderr=stderr)


@pytest.fixture
def findings(lodash_project, advisory_data):
    dependencies = PackageManifestParser(lodash_project).get_all_dependencies()
    advisories = [AdvisoryRecord.from_dict(a) for a in advisory_data]
    return VulnerabilityMatcher().match_all(dependencies, advisories).findings


class TestFileTransaction:
    """Test snapshot, commit and rollback of files."""

    def test_commit_removes_backups(self, tmp_path):
        target = tmp_path / "package.json"
        target.write_text("old")

        with file_transaction(target) as transaction:
            target.write_text("new")

        assert target.read_text() == "new"
        assert transaction.state == "committed"
        assert not (tmp_path / "package.json.backup").exists()

    def test_rollback_restores_files(self, tmp_path):
        target = tmp_path / "package.json"
        lock = tmp_path / "package-lock.json"
        created = tmp_path / "new-file.json"
        target.write_text("old")
        lock.write_text("lock")

        with pytest.raises(RuntimeError):
            with file_transaction(target, lock, created):
                target.write_text("new")
                lock.unlink()
                created.write_text("created")
                raise RuntimeError("boom")

        assert target.read_text() == "old"
        assert lock.read_text() == "lock"
        assert not created.exists()
        assert not (tmp_path / "package.json.backup").exists()
        assert not (tmp_path / "package-lock.json.backup").exists()


class TestNpmInstaller:
    """Test the npm subprocess wrapper."""

    def test_missing_executable(self, tmp_path):
        installer = NpmInstaller(command=["definitely-not-a-real-npm-binary", "install"])
        result = installer.install(tmp_path)

        assert result.exit_code == 127
        assert not result.ok


class TestAutoFixer:
    """Test applying fix plans to a project."""

    def test_plan(self, lodash_project, findings):
        report = AutoFixer(lodash_project).plan(findings)

        assert [p.package_name for p in report.plans] == ["lodash"]
        # minimist is only in the lock file
        assert [f.package for f in report.unfixable] == ["minimist"]

    def test_apply_updates_manifest_and_regenerates_lock(self, lodash_project, findings):
        installer = Mock(spec=NpmInstaller)

        def fake_install(cwd):
            (cwd / "package-lock.json").write_text('{"lockfileVersion": 3}')
            return npm_result()

        installer.install.side_effect = fake_install
        fixer = AutoFixer(lodash_project, installer=installer)

        report = fixer.fix_vulnerabilities(findings)

        manifest = json.loads((lodash_project / "package.json").read_text())
        assert manifest["dependencies"]["lodash"] == "^4.17.21"
        assert manifest["devDependencies"] == {"jest": "^29.0.0"}
        assert report.applied == ["lodash"]
        assert report.failed == {}
        installer.install.assert_called_once_with(lodash_project)
        assert json.loads((lodash_project / "package-lock.json").read_text()) == {"lockfileVersion": 3}
        assert not (lodash_project / "package.json.backup").exists()

    def test_install_failure_rolls_back(self, lodash_project, findings):
        original_manifest = (lodash_project / "package.json").read_text()
        original_lock = (lodash_project / "package-lock.json").read_text()
        installer = Mock(spec=NpmInstaller)
        installer.install.return_value = npm_result(exit_code=1, stderr="ERESOLVE unable to resolve")

        fixer = AutoFixer(lodash_project, installer=installer)
        report = fixer.plan(findings)

        with pytest.raises(FixApplicationError, match="ERESOLVE"):
            fixer.apply(report)

        assert (lodash_project / "package.json").read_text() == original_manifest
        assert (lodash_project / "package-lock.json").read_text() == original_lock
        assert report.applied == []
        assert not (lodash_project / "package.json.backup").exists()

    def test_skip_lock_regeneration(self, lodash_project, findings):
        installer = Mock(spec=NpmInstaller)
        fixer = AutoFixer(lodash_project, installer=installer, regenerate_lockfile=False)

        report = fixer.fix_vulnerabilities(findings)

        assert report.applied == ["lodash"]
        installer.install.assert_not_called()
        assert (lodash_project / "package-lock.json").exists()

    def test_failed_package_does_not_block_others(self, lodash_project, findings):
        fixer = AutoFixer(lodash_project, regenerate_lockfile=False)
        report = fixer.plan(findings)
        report.plans[0].declaration_kind = "optionalDependencies"

        fixer.apply(report)

        assert report.applied == []
        assert "lodash" in report.failed
        manifest = json.loads((lodash_project / "package.json").read_text())
        assert manifest["dependencies"]["lodash"] == "^4.17.0"

    def test_nothing_to_apply(self, lodash_project):
        report = AutoFixer(lodash_project).fix_vulnerabilities([])
        assert report.plans == []
        assert report.applied == []
