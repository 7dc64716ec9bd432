"""Exception hierarchy for NodeShield."""


class NodeShieldError(Exception):
    """Base class for all NodeShield errors."""


class ManifestError(NodeShieldError):
    """The project manifest could not be read."""


class ManifestNotFoundError(ManifestError, FileNotFoundError):
    """No package.json in the scanned directory."""


class LockfileUnreadableError(NodeShieldError):
    """package-lock.json exists but could not be parsed."""


class RangeParseError(NodeShieldError, ValueError):
    """A version or range expression could not be parsed."""


class AdvisoryFetchError(NodeShieldError):
    """Vulnerability data could not be retrieved."""


class FixApplicationError(NodeShieldError):
    """Writing the updated manifest or lock state failed."""
