"""Tests for the plugin manifest model and its URL helpers."""

from matterbridge.plugins.manifest import (
    PluginManifest,
    get_author,
    get_changelog,
    get_funding,
    get_help,
    get_homepage,
    normalize_repository_url,
)


class TestPluginManifest:
    """Tests for PluginManifest."""

    def test_aliases_and_extra_fields(self):
        manifest = PluginManifest.model_validate(
            {
                "name": "matterbridge-x",
                "devDependencies": {"pytest": "*"},
                "peerDependencies": {"matterbridge": "*"},
                "keywords": ["matterbridge"],
            }
        )
        groups = manifest.dependency_groups()
        assert groups["devDependencies"] == {"pytest": "*"}
        assert groups["peerDependencies"] == {"matterbridge": "*"}
        assert manifest.model_extra["keywords"] == ["matterbridge"]


class TestUrlHelpers:
    """Tests for author and URL fallbacks."""

    def test_author(self):
        assert get_author(PluginManifest(author="Ann")) == "Ann"
        assert get_author(PluginManifest(author={"name": "Bob", "email": "b@x"})) == "Bob"
        assert get_author(PluginManifest()) == "Unknown author"

    def test_normalize_repository_url(self):
        assert normalize_repository_url("git+https://github.com/a/b.git") == "https://github.com/a/b"

    def test_homepage_falls_back_to_repository(self):
        manifest = PluginManifest(repository={"type": "git", "url": "git+https://github.com/a/b.git"})
        assert get_homepage(manifest) == "https://github.com/a/b"

    def test_help_and_changelog_fallbacks(self):
        manifest = PluginManifest(repository="https://github.com/a/b")
        assert get_help(manifest) == "https://github.com/a/b/blob/main/README.md"
        assert get_changelog(manifest) == "https://github.com/a/b/blob/main/CHANGELOG.md"

        manifest = PluginManifest(homepage="https://example.com")
        assert get_help(manifest) == "https://example.com"
        assert get_changelog(manifest) == "https://example.com"

        manifest = PluginManifest(help="https://docs.example.com", repository="https://github.com/a/b")
        assert get_help(manifest) == "https://docs.example.com"

    def test_relative_urls_are_ignored(self):
        manifest = PluginManifest(homepage="docs/index.html")
        assert get_homepage(manifest) is None
        assert get_help(manifest) is None

    def test_funding(self):
        assert get_funding(PluginManifest(funding="https://fund.me/x")) == "https://fund.me/x"
        assert get_funding(PluginManifest(funding={"type": "x", "url": "https://fund.me/y"})) == "https://fund.me/y"
        assert get_funding(PluginManifest(funding=["nope", {"url": "https://fund.me/z"}])) == "https://fund.me/z"
        assert get_funding(PluginManifest()) is None
