"""Tests for project and site administration."""

import pytest

from localsearch.exceptions import (
    DuplicateSiteError,
    ProjectNotFoundError,
    ProjectValidationError,
)
from localsearch.models.site_models import CrawlConfig, SiteStatus
from localsearch.services.admin_service import AdminService


@pytest.fixture
def admin(store):
    return AdminService(store, default_max_depth=2, default_crawl_delay=0.5)


class TestCreateProject:
    """Tests for AdminService.create_project."""

    def test_defaults_applied_and_domains_normalized(self, admin):
        project = admin.create_project("  Docs search ", ["Example.COM.", "example.com", "blog.example.com"])

        assert project.name == "Docs search"
        assert project.base_domains == ["example.com", "blog.example.com"]
        assert project.crawl_config == CrawlConfig(max_depth=2, crawl_delay=0.5)

    def test_explicit_crawl_config(self, admin):
        project = admin.create_project(
            "Docs", ["example.com"], crawl_config={"max_depth": 5, "crawl_delay": 0, "respect_robots": False}
        )

        assert project.crawl_config.max_depth == 5
        assert not project.crawl_config.respect_robots

    @pytest.mark.parametrize(
        "name,domains,config,field",
        [
            ("ab", ["example.com"], None, "name"),
            ("x" * 101, ["example.com"], None, "name"),
            ("Docs", [], None, "base_domains"),
            ("Docs", ["not a domain"], None, "base_domains"),
            ("Docs", ["example.com"], {"max_depth": 11}, "crawl_config.max_depth"),
            ("Docs", ["example.com"], {"max_depth": 0}, "crawl_config.max_depth"),
            ("Docs", ["example.com"], {"crawl_delay": 61}, "crawl_config.crawl_delay"),
        ],
    )
    def test_out_of_bounds_rejected(self, admin, store, name, domains, config, field):
        with pytest.raises(ProjectValidationError, match=rf"^{field}:"):
            admin.create_project(name, domains, crawl_config=config)

        assert store.list_projects() == []

    def test_description_length(self, admin):
        with pytest.raises(ProjectValidationError):
            admin.create_project("Docs", ["example.com"], description="d" * 501)


class TestUpdateProject:
    """Tests for AdminService.update_project."""

    def test_replaces_fields_and_crawl_config(self, admin, project):
        updated = admin.update_project(
            project.id,
            "Renamed project",
            ["example.com", "Docs.Example.org"],
            description="new description",
            crawl_config={"max_depth": 1, "crawl_delay": 2, "respect_robots": False},
        )

        assert updated.id == project.id
        assert updated.created_at == project.created_at
        assert updated.base_domains == ["example.com", "docs.example.org"]
        assert updated.crawl_config == CrawlConfig(max_depth=1, crawl_delay=2, respect_robots=False)
        assert admin.list_projects() == [updated]

    def test_omitted_crawl_config_is_kept(self, admin, project):
        updated = admin.update_project(project.id, "Example Project", ["example.org"])

        assert updated.crawl_config == project.crawl_config
        assert updated.base_domains == ["example.org"]

    def test_unknown_project(self, admin):
        with pytest.raises(ProjectNotFoundError):
            admin.update_project(99, "Docs", ["example.com"])

    @pytest.mark.parametrize(
        "name,domains,config,field",
        [
            ("ab", ["example.com"], None, "name"),
            ("Docs", [], None, "base_domains"),
            ("Docs", ["example.com"], {"max_depth": 11}, "crawl_config.max_depth"),
        ],
    )
    def test_out_of_bounds_rejected(self, admin, store, project, name, domains, config, field):
        with pytest.raises(ProjectValidationError, match=rf"^{field}:"):
            admin.update_project(project.id, name, domains, crawl_config=config)

        assert store.get_project(project.id) == project


class TestAddSite:
    """Tests for AdminService.add_site."""

    def test_site_keyed_by_host(self, admin, project):
        site = admin.add_site(project.id, "blog.example.com/start")

        assert site.domain == "blog.example.com"
        assert site.base_url == "http://blog.example.com/start"
        assert site.status == SiteStatus.PENDING
        assert site.crawl_frequency == 24

    def test_duplicate_domain_rejected(self, admin, project):
        admin.add_site(project.id, "https://example.com/")

        with pytest.raises(DuplicateSiteError):
            admin.add_site(project.id, "https://example.com/other")

    def test_unknown_project(self, admin):
        with pytest.raises(ProjectNotFoundError):
            admin.add_site(99, "https://example.com/")

    def test_invalid_url(self, admin, project):
        with pytest.raises(ProjectValidationError, match="Invalid site URL"):
            admin.add_site(project.id, "https://exa mple.com/")

    def test_invalid_frequency(self, admin, project):
        with pytest.raises(ProjectValidationError, match="crawl_frequency"):
            admin.add_site(project.id, "https://example.com/", crawl_frequency=0)

    def test_listing(self, admin, project):
        admin.add_site(project.id, "https://example.com/")

        assert [p.id for p in admin.list_projects()] == [project.id]
        assert [s.domain for s in admin.list_sites(project.id)] == ["example.com"]
        assert admin.list_sites(project.id + 1) == []
