"""Online advisory database backed by OSV.dev and the npm ecosystem APIs."""

import asyncio
import ssl
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp
import certifi
from aiohttp import ClientTimeout

from ..core.errors import AdvisoryFetchError
from ..core.matcher import AdvisoryRecord, SEVERITY_RANKS, normalize_severity
from ..core.parsers import ResolvedDependency
from ..utils.logging import get_logger
from .base import Alternative, VulnerabilityDatabase


OSV_ECOSYSTEM = "npm"


def _interval(introduced: Optional[str], upper: Optional[str]) -> str:
    parts = []
    if introduced and introduced != "0":
        parts.append(f">={introduced}")
    if upper:
        parts.append(upper)
    return " ".join(parts) or "*"


def osv_vulnerable_range(affected: Dict[str, Any]) -> str:
    """Build an npm range expression from an OSV "affected" entry.

    Each introduced/fixed (or last_affected) pair becomes one interval and
    intervals are joined with "||". Without ranges, the explicit version
    list is used.

    Args:
        affected: OSV affected entry

    Returns:
        Range expression, empty if nothing is affected
    """
    intervals = []

    for version_range in affected.get("ranges") or []:
        if version_range.get("type") not in ("SEMVER", "ECOSYSTEM"):
            continue

        introduced = None
        for event in version_range.get("events") or []:
            if "introduced" in event:
                introduced = event["introduced"]
            elif "fixed" in event and introduced is not None:
                intervals.append(_interval(introduced, f"<{event['fixed']}"))
                introduced = None
            elif "last_affected" in event and introduced is not None:
                intervals.append(_interval(introduced, f"<={event['last_affected']}"))
                introduced = None

        if introduced is not None:
            intervals.append(_interval(introduced, None))

    if not intervals:
        intervals = [str(v) for v in affected.get("versions") or []]

    return " || ".join(intervals)


def osv_fixed_versions(affected: Dict[str, Any]) -> List[str]:
    fixed = []
    for version_range in affected.get("ranges") or []:
        for event in version_range.get("events") or []:
            if "fixed" in event and event["fixed"] not in fixed:
                fixed.append(event["fixed"])
    return fixed


def osv_severity(vuln: Dict[str, Any]) -> str:
    """Map OSV/GHSA severity labels onto low/moderate/high/critical."""
    severity = (vuln.get("database_specific") or {}).get("severity")
    if not isinstance(severity, str):
        return "low"

    severity = normalize_severity(severity)
    return severity if severity in SEVERITY_RANKS else "low"


def convert_osv_record(vuln: Dict[str, Any], package_name: str) -> List[AdvisoryRecord]:
    """Convert an OSV vulnerability into advisory records for one package.

    Args:
        vuln: Raw OSV vulnerability
        package_name: npm package the query was made for

    Returns:
        One advisory per matching "affected" entry
    """
    if vuln.get("withdrawn"):
        return []

    references = [ref["url"] for ref in vuln.get("references") or [] if ref.get("url")]
    severity = osv_severity(vuln)
    advisories = []

    for affected in vuln.get("affected") or []:
        package = affected.get("package") or {}
        if package.get("name") != package_name:
            continue
        if package.get("ecosystem", OSV_ECOSYSTEM).lower() != OSV_ECOSYSTEM:
            continue

        vulnerable = osv_vulnerable_range(affected)
        if not vulnerable:
            continue

        fixed = osv_fixed_versions(affected)
        if fixed:
            patched = ", ".join(f">={version}" for version in fixed)
            recommendation = f"Upgrade to version {fixed[-1]} or later"
        else:
            patched = "unknown"
            recommendation = "No patched version is available"

        advisories.append(AdvisoryRecord(
            id=vuln.get("id", ""),
            package_name=package_name,
            severity=severity,
            title=vuln.get("summary") or "",
            overview=vuln.get("details") or "",
            recommendation=recommendation,
            vulnerable_versions=vulnerable,
            patched_versions=patched,
            references=references,
            source="osv",
        ))

    return advisories


class OSVAdvisoryDatabase(VulnerabilityDatabase):
    """Async client for OSV.dev advisories and npms.io alternatives."""

    OSV_URL = "https://api.osv.dev/v1/query"
    REGISTRY_URL = "https://registry.npmjs.org"
    NPMS_SEARCH_URL = "https://api.npms.io/v2/search"
    DOWNLOADS_URL = "https://api.npmjs.org/downloads/point/last-week"

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
        max_concurrent: int = 10,
        max_alternatives: int = 5
    ) -> None:
        """Initialize the online database.

        Args:
            session: Optional aiohttp session for connection reuse
            timeout: Total timeout per request in seconds
            max_concurrent: Maximum concurrent OSV queries
            max_alternatives: Maximum alternatives returned per package
        """
        self.logger = get_logger("OSVAdvisoryDatabase")
        self._session = session
        self._owns_session = session is None
        self._timeout = ClientTimeout(total=timeout)
        self._max_concurrent = max_concurrent
        self._max_alternatives = max_alternatives
        self._rate_limit_delay = 0.1  # 100ms between requests
        self._ssl_context = ssl.create_default_context(cafile=certifi.where())

    def _get_session(self) -> aiohttp.ClientSession:
        if not self._session or self._session.closed:
            connector = aiohttp.TCPConnector(ssl=self._ssl_context)
            self._session = aiohttp.ClientSession(timeout=self._timeout, connector=connector)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def get_vulnerabilities(self, dependencies: List[ResolvedDependency]) -> List[AdvisoryRecord]:
        names = list(dict.fromkeys(dep.name for dep in dependencies))
        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def query_with_semaphore(name: str) -> List[AdvisoryRecord]:
            async with semaphore:
                await asyncio.sleep(self._rate_limit_delay)  # Rate limiting
                return await self.query_package(name)

        # Wait for every query so none is left running against a closed session
        results = await asyncio.gather(
            *(query_with_semaphore(name) for name in names),
            return_exceptions=True
        )

        advisories = []
        for name, result in zip(names, results):
            if isinstance(result, AdvisoryFetchError):
                raise result
            if isinstance(result, (aiohttp.ClientError, asyncio.TimeoutError)):
                raise AdvisoryFetchError(f"OSV query failed for {name}: {result}") from result
            if isinstance(result, BaseException):
                raise result
            advisories.extend(result)
        self.logger.info(f"Fetched {len(advisories)} advisories for {len(names)} packages")
        return advisories

    async def query_package(self, package_name: str) -> List[AdvisoryRecord]:
        """Query OSV for every advisory of one npm package.

        Args:
            package_name: npm package name

        Returns:
            Advisory records

        Raises:
            AdvisoryFetchError: On a non-200 response
        """
        session = self._get_session()
        query: Dict[str, Any] = {"package": {"name": package_name, "ecosystem": OSV_ECOSYSTEM}}
        advisories: List[AdvisoryRecord] = []

        while True:
            async with session.post(self.OSV_URL, json=query) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise AdvisoryFetchError(
                        f"OSV API error for {package_name}: {response.status} - {error_text}"
                    )
                data = await response.json()

            for vuln in data.get("vulns") or []:
                advisories.extend(convert_osv_record(vuln, package_name))

            page_token = data.get("next_page_token")
            if not page_token:
                return advisories
            query["page_token"] = page_token

    async def get_package_alternatives(self, package_name: str) -> List[Alternative]:
        session = self._get_session()

        keywords = await self._fetch_keywords(session, package_name)
        search = f"keywords:{','.join(keywords[:3])}" if keywords else package_name
        params = {"q": search, "size": str(self._max_alternatives + 1)}

        async with session.get(self.NPMS_SEARCH_URL, params=params) as response:
            if response.status != 200:
                raise AdvisoryFetchError(f"npms search failed for {package_name}: {response.status}")
            data = await response.json()

        candidates = []
        for result in data.get("results") or []:
            package = result.get("package") or {}
            if package.get("name") and package["name"] != package_name:
                candidates.append(result)
        candidates = candidates[:self._max_alternatives]

        downloads = await asyncio.gather(
            *(self._fetch_downloads(session, c["package"]["name"]) for c in candidates)
        )

        alternatives = []
        for candidate, weekly in zip(candidates, downloads):
            detail = (candidate.get("score") or {}).get("detail") or {}
            alternatives.append(Alternative(
                name=candidate["package"]["name"],
                description=candidate["package"].get("description") or "",
                quality=_clamp(detail.get("quality")),
                stars=_clamp(detail.get("popularity")),
                downloads=weekly,
            ))
        return alternatives

    async def _fetch_keywords(self, session: aiohttp.ClientSession, package_name: str) -> List[str]:
        url = f"{self.REGISTRY_URL}/{quote(package_name, safe='@')}/latest"
        async with session.get(url) as response:
            if response.status != 200:
                self.logger.debug(f"No registry metadata for {package_name}: {response.status}")
                return []
            data = await response.json()

        keywords = data.get("keywords") or []
        return [k for k in keywords if isinstance(k, str)]

    async def _fetch_downloads(self, session: aiohttp.ClientSession, package_name: str) -> int:
        url = f"{self.DOWNLOADS_URL}/{quote(package_name, safe='@/')}"
        async with session.get(url) as response:
            if response.status != 200:
                return 0
            data = await response.json()
        return int(data.get("downloads") or 0)


def _clamp(value: Any) -> float:
    try:
        return min(max(float(value), 0.0), 1.0)
    except (TypeError, ValueError):
        return 0.0
