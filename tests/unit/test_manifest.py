"""
Unit tests for compose manifest generation.
"""

import yaml

from wpstack.core.manifest import ManifestGenerator, project_name_for
from wpstack.core.site import Site


def _sites(*domains):
    return [Site.from_domain(d, index=i) for i, d in enumerate(domains, start=1)]


class TestManifestGenerator:
    """Unit tests for ManifestGenerator."""

    def test_single_site_services(self):
        """Test one site yields exactly one php/redis pair named after it."""
        manifest = yaml.safe_load(ManifestGenerator().generate(_sites("example.com"), "test"))

        assert set(manifest["services"]) == {"nginx", "db", "php_example", "redis_example"}
        assert manifest["name"] == "wp_test"

    def test_proxy_depends_on_every_app(self):
        """Test nginx waits for every php service to be healthy."""
        manifest = yaml.safe_load(
            ManifestGenerator().generate(_sites("example.com", "shop.example.net"), "test")
        )

        depends = manifest["services"]["nginx"]["depends_on"]
        assert depends == {
            "php_example": {"condition": "service_healthy"},
            "php_shop": {"condition": "service_healthy"},
        }

    def test_php_service(self):
        """Test the php service builds from its site dir and uses its database."""
        manifest = yaml.safe_load(ManifestGenerator().generate(_sites("my-blog.example.com"), "test"))

        php = manifest["services"]["php_my-blog"]
        assert php["build"]["context"] == "./site-my-blog"
        assert php["environment"]["WORDPRESS_DB_NAME"] == "wp_my_blog"
        assert php["depends_on"]["db"] == {"condition": "service_healthy"}
        assert php["depends_on"]["redis_my-blog"] == {"condition": "service_healthy"}
        assert "healthcheck" in php

    def test_volumes_networks_secrets(self):
        """Test shared volumes, one cache volume per site, networks and secrets."""
        manifest = yaml.safe_load(
            ManifestGenerator().generate(_sites("example.com", "shop.example.net"), "test")
        )

        assert set(manifest["volumes"]) == {"db_data", "cache_example", "cache_shop"}
        assert manifest["networks"]["backend"]["internal"] is True
        assert set(manifest["secrets"]) == {"db_password", "db_root_password"}

        mounts = manifest["services"]["nginx"]["volumes"]
        assert "./nginx/example.com.conf:/etc/nginx/conf.d/example.com.conf:ro" in mounts
        assert "cache_shop:/var/cache/nginx/shop" in mounts

    def test_no_sites(self):
        """Test an empty registry still gives a valid manifest."""
        manifest = yaml.safe_load(ManifestGenerator().generate([], "test"))

        assert set(manifest["services"]) == {"nginx", "db"}
        assert "depends_on" not in manifest["services"]["nginx"]
        assert set(manifest["volumes"]) == {"db_data"}

    def test_deterministic(self):
        """Test the same sites always give byte-identical output."""
        generator = ManifestGenerator()
        sites = _sites("example.com", "shop.example.net")

        assert generator.generate(sites, "test") == generator.generate(list(sites), "test")

    def test_order_follows_registry(self):
        """Test services appear in registry order."""
        text = ManifestGenerator().generate(_sites("zeta.example.com", "alpha.example.com"), "test")

        assert text.index("php_zeta:") < text.index("php_alpha:")

    def test_write_through_tracker(self, tmp_path, tracker):
        """Test write() stores the rendered manifest."""
        path = tmp_path / "docker-compose.yml"
        generator = ManifestGenerator()

        generator.write(path, _sites("example.com"), "test", tracker)

        assert path.read_text() == generator.generate(_sites("example.com"), "test")

    def test_project_name(self):
        assert project_name_for("staging-eu") == "wp_staging_eu"
