"""
Unit tests for the site registry.

The registry owns three files: the .env registry, the database init script
and the cache zone list.
"""

import pytest

from wpstack.config import CACHE_ZONES_BEGIN, CACHE_ZONES_END
from wpstack.core.registry import SiteRegistry, cache_zone_line, database_lines
from wpstack.core.site import Site
from wpstack.errors import DuplicateSiteError, NotFoundError


@pytest.fixture
def registry(tmp_path, tracker):
    root = tmp_path / "deployments" / "test"
    (root / "scripts").mkdir(parents=True)
    (root / "nginx" / "includes").mkdir(parents=True)

    (root / ".env").write_text("COMPOSE_PROJECT_NAME=wp_test\n# operator note\n")
    (root / "scripts" / "init-databases.sql").write_text("-- databases\n")
    (root / "nginx" / "includes" / "fastcgi-cache.conf").write_text(
        f"# cache\n{CACHE_ZONES_BEGIN}\n{CACHE_ZONES_END}\nfastcgi_cache_lock on;\n"
    )

    return SiteRegistry(
        root / ".env",
        root / "scripts" / "init-databases.sql",
        root / "nginx" / "includes" / "fastcgi-cache.conf",
        tracker,
    )


def _contents(registry):
    return (
        registry.registry_file.read_bytes(),
        registry.db_init_file.read_bytes(),
        registry.cache_config_file.read_bytes(),
    )


class TestSiteRegistry:
    """Unit tests for SiteRegistry."""

    def test_add_two_sites_in_order(self, registry):
        """Test adding two sites lists exactly those, in insertion order."""
        registry.add("example.com")
        registry.add("shop.example.net")

        sites = registry.list()
        assert [s.domain for s in sites] == ["example.com", "shop.example.net"]
        assert [s.index for s in sites] == [1, 2]

    def test_add_writes_registry_lines(self, registry):
        """Test the .env gets a DOMAIN and DB_NAME line per site."""
        registry.add("example.com")

        text = registry.registry_file.read_text()
        assert "COMPOSE_PROJECT_NAME=wp_test\n# operator note\n" in text
        assert "SITE1_DOMAIN=example.com\n" in text
        assert "SITE1_DB_NAME=wp_example\n" in text

    def test_add_writes_database_and_zone(self, registry):
        """Test dependent files get the site's SQL and cache zone."""
        site = registry.add("example.com")

        sql = registry.db_init_file.read_text()
        for line in database_lines(site):
            assert line in sql

        lines = registry.cache_config_file.read_text().splitlines()
        zone = lines.index(cache_zone_line(site))
        assert lines.index(CACHE_ZONES_BEGIN) < zone < lines.index(CACHE_ZONES_END)

    def test_add_remove_round_trip(self, registry):
        """Test add then remove restores all three files byte for byte."""
        registry.add("example.com")
        before = _contents(registry)

        registry.add("blog.example.org")
        registry.remove("blog.example.org")

        assert _contents(registry) == before

    def test_round_trip_without_final_newline(self, registry):
        """Test a hand-edited .env without a trailing newline keeps its ending."""
        registry.registry_file.write_text("COMPOSE_PROJECT_NAME=wp_test")
        before = _contents(registry)

        registry.add("example.com")
        assert registry.find("example.com").index == 1

        registry.remove("example.com")

        assert _contents(registry) == before

    def test_index_is_max_plus_one(self, registry):
        """Test indices are not reused while a higher one exists."""
        registry.add("one.example.com")
        registry.add("two.example.com")
        registry.remove("one.example.com")

        site = registry.add("three.example.com")

        assert site.index == 3
        assert [s.domain for s in registry.list()] == ["two.example.com", "three.example.com"]

    def test_duplicate_domain(self, registry):
        """Test registering a domain twice is rejected."""
        registry.add("example.com")

        with pytest.raises(DuplicateSiteError):
            registry.add("EXAMPLE.com")

    def test_short_name_collision(self, registry):
        """Test domains sharing a first label are rejected."""
        registry.add("a.example.com")

        with pytest.raises(DuplicateSiteError, match="short name"):
            registry.add("a.other.com")

    def test_check_available_against_given_sites(self, registry):
        """Test an explicit site list is checked instead of the file."""
        sites = [Site("example.com", 1)]

        with pytest.raises(DuplicateSiteError):
            registry.check_available("example.com", sites)

        assert registry.check_available("example.com").domain == "example.com"

    def test_get_unknown(self, registry):
        """Test looking up an unregistered domain."""
        with pytest.raises(NotFoundError):
            registry.get("missing.example.com")

        with pytest.raises(NotFoundError):
            registry.remove("missing.example.com")

    def test_exists_and_find(self, registry):
        registry.add("example.com")

        assert registry.exists("example.com")
        assert registry.find("Example.COM").index == 1
        assert not registry.exists("example.org")

    def test_list_reads_existing_file(self, registry):
        """Test a hand-written registry is read in file order."""
        registry.registry_file.write_text(
            "COMPOSE_PROJECT_NAME=wp_test\n"
            "SITE5_DOMAIN=late.example.com\n"
            "SITE5_DB_NAME=wp_late\n"
            "SITE2_DOMAIN=early.example.com\n"
            "SITE2_DB_NAME=wp_early\n"
        )

        sites = registry.list()

        assert [(s.index, s.domain) for s in sites] == [(5, "late.example.com"), (2, "early.example.com")]

    def test_missing_markers_are_added(self, registry):
        """Test a cache config without markers gets a marked zone block."""
        registry.cache_config_file.write_text("fastcgi_cache_lock on;\n")

        site = registry.add("example.com")

        lines = registry.cache_config_file.read_text().splitlines()
        assert lines == ["fastcgi_cache_lock on;", CACHE_ZONES_BEGIN, cache_zone_line(site), CACHE_ZONES_END]

    def test_uninitialized(self, tmp_path, tracker):
        """Test a registry without a file is empty and uninitialized."""
        registry = SiteRegistry(tmp_path / ".env", tmp_path / "a.sql", tmp_path / "c.conf", tracker)

        assert not registry.initialized()
        assert registry.list() == []
