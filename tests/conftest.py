"""Shared fixtures for NodeShield tests."""

import json

import pytest


def write_json(path, data):
    path.write_text(json.dumps(data, indent=2))
    return path


@pytest.fixture(name="write_json")
def write_json_fixture():
    """Helper that writes a JSON document to a path."""
    return write_json


@pytest.fixture
def lodash_project(tmp_path):
    """Create a project with lodash 4.17.20 installed and a v2 lock file."""
    write_json(tmp_path / "package.json", {
        "name": "demo-project",
        "version": "1.0.0",
        "dependencies": {
            "lodash": "^4.17.0",
            "express": "^4.18.2"
        },
        "devDependencies": {
            "jest": "^29.0.0"
        }
    })
    write_json(tmp_path / "package-lock.json", {
        "name": "demo-project",
        "version": "1.0.0",
        "lockfileVersion": 2,
        "packages": {
            "": {"name": "demo-project", "version": "1.0.0"},
            "node_modules/lodash": {"version": "4.17.20"},
            "node_modules/express": {"version": "4.18.2"},
            "node_modules/jest": {"version": "29.7.0"},
            "node_modules/minimist": {"version": "1.2.5"}
        }
    })
    return tmp_path


@pytest.fixture
def advisory_data():
    """npm-style advisories for the lodash project."""
    return [
        {
            "id": "1523",
            "module_name": "lodash",
            "severity": "high",
            "title": "Prototype Pollution in lodash",
            "overview": "Versions of lodash before 4.17.21 are vulnerable to prototype pollution.",
            "recommendation": "Upgrade to version 4.17.21 or later",
            "vulnerable_versions": "<4.17.21",
            "patched_versions": ">=4.17.21",
            "references": "https://github.com/advisories/GHSA-35jh-r3h4-6jhm\nhttps://nvd.nist.gov/vuln/detail/CVE-2021-23337",
            "source": "npm"
        },
        {
            "id": "1179",
            "module_name": "minimist",
            "severity": "moderate",
            "title": "Prototype Pollution in minimist",
            "vulnerable_versions": "<1.2.6",
            "patched_versions": ">=1.2.6",
            "source": "npm"
        },
        {
            "id": "9999",
            "module_name": "left-pad",
            "severity": "critical",
            "title": "Unrelated advisory",
            "vulnerable_versions": "*",
            "patched_versions": "unknown"
        }
    ]


@pytest.fixture
def advisory_db(tmp_path, advisory_data):
    """Write an offline advisory database file with alternatives."""
    db_dir = tmp_path / "db"
    db_dir.mkdir()
    return write_json(db_dir / "advisories.json", {
        "advisories": advisory_data,
        "alternatives": {
            "lodash": [
                {"name": "ramda", "description": "A practical functional library", "quality": 0.9, "stars": 0.8, "downloads": 9000000},
                {"name": "underscore", "description": "JavaScript's functional programming helper library", "quality": 0.85, "stars": 0.7, "downloads": 12000000}
            ]
        }
    })
