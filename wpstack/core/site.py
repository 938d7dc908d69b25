"""
Site - the one domain entity wpstack manages.

Every generated resource name (database, cache volume, compose services,
cache zone) is derived from the domain's first label.
"""

import re
from dataclasses import dataclass
from typing import Dict

from wpstack.errors import InvalidInputError

_LABEL = re.compile(r"^(?!-)[a-z0-9-]{1,63}(?<!-)$")


def normalize_domain(domain: str) -> str:
    """
    Lower-case and validate a domain name.

    Raises:
        InvalidInputError: If the domain is empty or not a valid FQDN
    """
    value = (domain or "").strip().lower().rstrip(".")
    if not value:
        raise InvalidInputError("Domain must not be empty")
    if len(value) > 253:
        raise InvalidInputError(f"Domain too long: {value}")

    labels = value.split(".")
    if len(labels) < 2:
        raise InvalidInputError(f"Domain must be a fully qualified name like example.com: {value}")
    for label in labels:
        if not _LABEL.match(label):
            raise InvalidInputError(f"Invalid domain label '{label}' in {value}")
    return value


def short_name_for(domain: str) -> str:
    """Return the substring before the first dot."""
    return domain.split(".", 1)[0]


@dataclass(frozen=True)
class Site:
    """
    A managed WordPress instance.

    Example:
        site = Site.from_domain("example.com", index=1)
        site.short_name      # "example"
        site.database_name   # "wp_example"
        site.zone_name       # "EXAMPLE"
    """
    domain: str
    index: int = 0

    @classmethod
    def from_domain(cls, domain: str, index: int = 0) -> "Site":
        return cls(domain=normalize_domain(domain), index=index)

    @property
    def short_name(self) -> str:
        return short_name_for(self.domain)

    @property
    def database_name(self) -> str:
        # unquoted MySQL identifiers cannot contain hyphens
        return "wp_" + self.short_name.replace("-", "_")

    @property
    def cache_volume_name(self) -> str:
        return f"cache_{self.short_name}"

    @property
    def zone_name(self) -> str:
        return self.short_name.upper()

    @property
    def php_service(self) -> str:
        return f"php_{self.short_name}"

    @property
    def redis_service(self) -> str:
        return f"redis_{self.short_name}"

    @property
    def services(self) -> list[str]:
        return [self.php_service, self.redis_service]

    def tokens(self) -> Dict[str, str]:
        """Placeholder values for the master templates."""
        return {
            "DOMAIN": self.domain,
            "SHORT": self.short_name,
            "UPPER": self.zone_name,
        }
