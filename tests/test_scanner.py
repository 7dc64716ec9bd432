"""Tests for scan orchestration."""

import asyncio

import pytest

from node_shield.advisories.base import Alternative, VulnerabilityDatabase
from node_shield.core.config import ScanConfig
from node_shield.core.errors import AdvisoryFetchError, ManifestNotFoundError
from node_shield.core.matcher import AdvisoryRecord, Finding
from node_shield.core.parsers import ResolvedDependency
from node_shield.core.scanner import VulnerabilityScanner


class FakeDatabase(VulnerabilityDatabase):
    """In-memory advisory source recording alternative lookups."""

    def __init__(self, advisories=None, alternatives=None, failing=(), error=None):
        self.advisories = advisories or []
        self.alternatives = alternatives or {}
        self.failing = set(failing)
        self.error = error
        self.lookups = []

    async def get_vulnerabilities(self, dependencies):
        if self.error:
            raise self.error
        return list(self.advisories)

    async def get_package_alternatives(self, package_name):
        self.lookups.append(package_name)
        if package_name in self.failing:
            raise ConnectionError(f"lookup failed for {package_name}")
        return self.alternatives.get(package_name, [])


@pytest.fixture
def advisories(advisory_data):
    return [AdvisoryRecord.from_dict(a) for a in advisory_data]


def run_scan(config, database):
    return asyncio.run(VulnerabilityScanner(config, database).scan())


class TestVulnerabilityScanner:
    """Test the scan pipeline."""

    def test_scan(self, lodash_project, advisories):
        result = run_scan(ScanConfig(path=lodash_project), FakeDatabase(advisories))

        assert result.summary.total == 4
        assert result.summary.vulnerable == 2
        assert result.summary.high == 1
        assert result.summary.moderate == 1
        assert {f.package for f in result.vulnerabilities} == {"lodash", "minimist"}
        assert result.alternatives == {}

        data = result.to_dict()
        assert set(data) == {"summary", "vulnerabilities", "dependencies", "alternatives"}
        assert data["summary"]["vulnerable"] == 2

    def test_severity_threshold(self, lodash_project, advisories):
        config = ScanConfig(path=lodash_project, min_severity="high")
        result = run_scan(config, FakeDatabase(advisories))

        assert [f.package for f in result.vulnerabilities] == ["lodash"]
        assert result.summary.moderate == 0

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(ManifestNotFoundError):
            run_scan(ScanConfig(path=tmp_path), FakeDatabase())

    def test_fetch_failure_is_fatal(self, lodash_project):
        database = FakeDatabase(error=ConnectionError("network down"))

        with pytest.raises(AdvisoryFetchError, match="network down"):
            run_scan(ScanConfig(path=lodash_project), database)

    def test_alternatives(self, lodash_project, advisories):
        database = FakeDatabase(advisories, alternatives={"lodash": [Alternative("ramda", quality=0.9)]})
        result = run_scan(ScanConfig(path=lodash_project, alternatives=True), database)

        # minimist has no alternatives and is left out
        assert list(result.alternatives) == ["lodash"]
        assert result.alternatives["lodash"][0].name == "ramda"
        assert sorted(database.lookups) == ["lodash", "minimist"]


class TestCollectAlternatives:
    """Test the bounded alternatives lookup."""

    def make_findings(self, names):
        findings = []
        for name in names:
            dependency = ResolvedDependency(name, "1.0.0", "1.0.0")
            findings.append(Finding.from_match(dependency, AdvisoryRecord(f"A-{name}", name, "low", "*")))
        return findings

    def test_caps_distinct_packages(self, tmp_path):
        names = ["a", "b", "a", "c", "d", "e", "f", "g"]
        database = FakeDatabase(alternatives={n: [Alternative(f"{n}-alt")] for n in names})
        scanner = VulnerabilityScanner(ScanConfig(path=tmp_path), database)

        alternatives = asyncio.run(scanner.collect_alternatives(self.make_findings(names)))

        assert sorted(database.lookups) == ["a", "b", "c", "d", "e"]
        assert list(alternatives) == ["a", "b", "c", "d", "e"]

    def test_failure_only_drops_that_package(self, tmp_path):
        database = FakeDatabase(
            alternatives={"a": [Alternative("a-alt")], "c": [Alternative("c-alt")]},
            failing={"b"},
        )
        scanner = VulnerabilityScanner(ScanConfig(path=tmp_path), database)

        alternatives = asyncio.run(scanner.collect_alternatives(self.make_findings(["a", "b", "c"])))

        assert list(alternatives) == ["a", "c"]

    def test_find_alternatives_propagates_errors(self, tmp_path):
        scanner = VulnerabilityScanner(ScanConfig(path=tmp_path), FakeDatabase(failing={"x"}))

        with pytest.raises(ConnectionError):
            asyncio.run(scanner.find_alternatives("x"))


class TestScanConfig:
    """Test configuration validation."""

    def test_defaults(self):
        config = ScanConfig()
        assert config.min_severity.value == "low"
        assert config.output.value == "table"
        assert config.max_alternatives == 5

    def test_offline_requires_database(self, tmp_path):
        with pytest.raises(ValueError):
            ScanConfig(mode="offline")
        with pytest.raises(ValueError):
            ScanConfig(mode="offline", database_path=tmp_path / "missing.json")

    def test_rejects_unknown_values(self):
        with pytest.raises(ValueError):
            ScanConfig(min_severity="urgent")
        with pytest.raises(ValueError):
            ScanConfig(output="xml")
