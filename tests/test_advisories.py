"""Tests for advisory sources."""

import asyncio
import json

import aiohttp
import pytest

from node_shield.advisories import OfflineAdvisoryDatabase, OSVAdvisoryDatabase
from node_shield.advisories.base import Alternative
from node_shield.advisories.online import (
    convert_osv_record,
    osv_severity,
    osv_vulnerable_range,
)
from node_shield.core.errors import AdvisoryFetchError
from node_shield.core.parsers import ResolvedDependency


LODASH_OSV = {
    "id": "GHSA-35jh-r3h4-6jhm",
    "summary": "Command Injection in lodash",
    "details": "lodash versions prior to 4.17.21 are vulnerable to Command Injection.",
    "affected": [
        {
            "package": {"ecosystem": "npm", "name": "lodash"},
            "ranges": [
                {"type": "SEMVER", "events": [{"introduced": "0"}, {"fixed": "4.17.21"}]}
            ]
        }
    ],
    "references": [
        {"type": "ADVISORY", "url": "https://nvd.nist.gov/vuln/detail/CVE-2021-23337"},
        {"type": "WEB"}
    ],
    "database_specific": {"severity": "HIGH"}
}


class FakeResponse:
    def __init__(self, status, payload):
        self.status = status
        self.payload = payload

    async def json(self):
        return self.payload

    async def text(self):
        return json.dumps(self.payload)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """Replays canned OSV responses and records request bodies."""

    closed = False

    def __init__(self, responses, failing=()):
        self.responses = list(responses)
        self.failing = set(failing)
        self.requests = []

    def post(self, url, json=None):
        self.requests.append(dict(json))
        if json["package"]["name"] in self.failing:
            raise aiohttp.ClientConnectionError("connection reset")
        return self.responses.pop(0)


class TestOSVConversion:
    """Test conversion of OSV records into advisories."""

    def test_convert_record(self):
        advisories = convert_osv_record(LODASH_OSV, "lodash")

        assert len(advisories) == 1
        advisory = advisories[0]
        assert advisory.id == "GHSA-35jh-r3h4-6jhm"
        assert advisory.severity == "high"
        assert advisory.vulnerable_versions == "<4.17.21"
        assert advisory.patched_versions == ">=4.17.21"
        assert advisory.recommendation == "Upgrade to version 4.17.21 or later"
        assert advisory.references == ["https://nvd.nist.gov/vuln/detail/CVE-2021-23337"]
        assert advisory.source == "osv"

    def test_multiple_intervals(self):
        affected = {
            "ranges": [{
                "type": "SEMVER",
                "events": [
                    {"introduced": "1.0.0"}, {"fixed": "1.2.6"},
                    {"introduced": "2.0.0"}, {"last_affected": "2.1.0"},
                    {"introduced": "3.0.0"}
                ]
            }]
        }
        assert osv_vulnerable_range(affected) == ">=1.0.0 <1.2.6 || >=2.0.0 <=2.1.0 || >=3.0.0"

    def test_versions_list_fallback(self):
        assert osv_vulnerable_range({"versions": ["1.0.0", "1.0.1"]}) == "1.0.0 || 1.0.1"

    def test_no_fix_available(self):
        vuln = dict(LODASH_OSV)
        vuln["affected"] = [{
            "package": {"ecosystem": "npm", "name": "lodash"},
            "ranges": [{"type": "SEMVER", "events": [{"introduced": "0"}]}]
        }]
        advisory = convert_osv_record(vuln, "lodash")[0]

        assert advisory.vulnerable_versions == "*"
        assert advisory.patched_versions == "unknown"

    def test_other_packages_and_withdrawn(self):
        assert convert_osv_record(LODASH_OSV, "lodash-es") == []
        assert convert_osv_record(dict(LODASH_OSV, withdrawn="2024-01-01T00:00:00Z"), "lodash") == []

    @pytest.mark.parametrize("label,expected", [
        ("CRITICAL", "critical"),
        ("MODERATE", "moderate"),
        ("MEDIUM", "moderate"),
        ("LOW", "low"),
        ("UNKNOWN", "low"),
        (None, "low"),
    ])
    def test_severity_mapping(self, label, expected):
        assert osv_severity({"database_specific": {"severity": label}}) == expected


class TestOSVAdvisoryDatabase:
    """Test the OSV client against a fake session."""

    def test_query_follows_pages(self):
        session = FakeSession([
            FakeResponse(200, {"vulns": [LODASH_OSV], "next_page_token": "abc"}),
            FakeResponse(200, {"vulns": []}),
        ])
        database = OSVAdvisoryDatabase(session=session)

        advisories = asyncio.run(database.query_package("lodash"))

        assert [a.id for a in advisories] == ["GHSA-35jh-r3h4-6jhm"]
        assert session.requests[0] == {"package": {"name": "lodash", "ecosystem": "npm"}}
        assert session.requests[1]["page_token"] == "abc"

    def test_error_status_raises(self):
        database = OSVAdvisoryDatabase(session=FakeSession([FakeResponse(500, {"error": "down"})]))

        with pytest.raises(AdvisoryFetchError):
            asyncio.run(database.query_package("lodash"))

    def test_get_vulnerabilities_queries_each_name_once(self):
        session = FakeSession([FakeResponse(200, {"vulns": [LODASH_OSV]})])
        database = OSVAdvisoryDatabase(session=session)
        dependencies = [ResolvedDependency("lodash", "4.17.20", "4.17.20")] * 2

        advisories = asyncio.run(database.get_vulnerabilities(dependencies))

        assert len(session.requests) == 1
        assert [a.package_name for a in advisories] == ["lodash"]

    def test_failed_query_waits_for_siblings(self):
        session = FakeSession([FakeResponse(200, {"vulns": []})], failing={"lodash"})
        database = OSVAdvisoryDatabase(session=session)
        dependencies = [
            ResolvedDependency("lodash", "4.17.20", "4.17.20"),
            ResolvedDependency("qs", "6.5.2", "6.5.2"),
        ]

        with pytest.raises(AdvisoryFetchError, match="lodash"):
            asyncio.run(database.get_vulnerabilities(dependencies))

        assert [r["package"]["name"] for r in session.requests] == ["lodash", "qs"]


class TestOfflineAdvisoryDatabase:
    """Test the file-backed advisory database."""

    def test_load_file(self, advisory_db):
        database = OfflineAdvisoryDatabase(advisory_db)

        assert database.get_database_stats() == {
            "total_packages": 3,
            "total_advisories": 3,
            "packages_with_alternatives": 1,
        }

    def test_get_vulnerabilities(self, advisory_db):
        database = OfflineAdvisoryDatabase(advisory_db)
        dependencies = [ResolvedDependency("lodash", "4.17.20", "4.17.20")]

        advisories = asyncio.run(database.get_vulnerabilities(dependencies))

        assert [a.id for a in advisories] == ["1523"]
        assert advisories[0].references[0] == "https://github.com/advisories/GHSA-35jh-r3h4-6jhm"

    def test_get_alternatives(self, advisory_db):
        database = OfflineAdvisoryDatabase(advisory_db)

        alternatives = asyncio.run(database.get_package_alternatives("lodash"))

        assert [a.name for a in alternatives] == ["ramda", "underscore"]
        assert isinstance(alternatives[0], Alternative)
        assert asyncio.run(database.get_package_alternatives("minimist")) == []

    def test_load_directory_skips_bad_files(self, tmp_path, write_json):
        write_json(tmp_path / "a.json", [{"id": "1", "module_name": "qs", "severity": "high", "vulnerable_versions": "<6.5.3"}])
        (tmp_path / "nested").mkdir()
        write_json(tmp_path / "nested" / "b.json", {"id": "2", "module_name": "qs", "vulnerable_versions": "<6.0.0"})
        (tmp_path / "broken.json").write_text("{ not json")

        database = OfflineAdvisoryDatabase(tmp_path)

        assert database.get_database_stats()["total_advisories"] == 2

    def test_missing_path(self, tmp_path):
        with pytest.raises(ValueError):
            OfflineAdvisoryDatabase(tmp_path / "missing")
