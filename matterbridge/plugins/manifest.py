"""Plugin manifest model - describes a plugin package as read from plugin.json."""

from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field


class PluginManifest(BaseModel):
    """Plugin manifest loaded from plugin.json.

    Every field is optional here: missing soft metadata is defaulted with a
    warning by the parser, missing structural fields are rejected there.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: Optional[str] = Field(default=None, description="Package name, unique key in the registry")
    version: Optional[str] = Field(default=None, description="Package version")
    description: Optional[str] = Field(default=None, description="Package description")
    author: Optional[Union[str, Dict[str, Any]]] = Field(
        default=None,
        description="Author name or an object with a 'name' field",
    )
    type: Optional[str] = Field(default=None, description="Module type marker, must be 'module'")
    main: Optional[str] = Field(
        default=None,
        description="Entry file relative to the manifest, e.g. 'plugin.py' or 'plugin.py:create_platform'",
    )
    dependencies: Dict[str, Any] = Field(default_factory=dict)
    dev_dependencies: Dict[str, Any] = Field(default_factory=dict, alias="devDependencies")
    peer_dependencies: Dict[str, Any] = Field(default_factory=dict, alias="peerDependencies")
    homepage: Optional[Any] = None
    repository: Optional[Union[str, Dict[str, Any]]] = None
    help: Optional[Any] = None
    changelog: Optional[Any] = None
    funding: Optional[Any] = None

    # Location of the manifest file this model was read from
    path: Optional[Path] = Field(default=None, exclude=True)

    @property
    def directory(self) -> Optional[Path]:
        return self.path.parent if self.path else None

    def dependency_groups(self) -> Dict[str, Dict[str, Any]]:
        """Dependency mappings keyed by their manifest field name."""
        return {
            "dependencies": self.dependencies,
            "devDependencies": self.dev_dependencies,
            "peerDependencies": self.peer_dependencies,
        }


def is_absolute_url(value: Any) -> bool:
    """True when value is a string that parses as an absolute http(s) URL."""
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def normalize_repository_url(url: str) -> str:
    """Strip a leading 'git+' and a trailing '.git' from a repository URL."""
    if url.startswith("git+"):
        url = url[len("git+"):]
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url


def _repository_url(manifest: PluginManifest) -> Optional[str]:
    repository = manifest.repository
    url = repository.get("url") if isinstance(repository, dict) else repository
    if not isinstance(url, str):
        return None
    url = normalize_repository_url(url)
    return url if is_absolute_url(url) else None


def _homepage_url(manifest: PluginManifest) -> Optional[str]:
    if not isinstance(manifest.homepage, str):
        return None
    url = normalize_repository_url(manifest.homepage)
    return url if is_absolute_url(url) else None


def get_author(manifest: PluginManifest) -> str:
    """Author as a string, or 'Unknown author'."""
    author = manifest.author
    if isinstance(author, str) and author:
        return author
    if isinstance(author, dict) and isinstance(author.get("name"), str) and author["name"]:
        return author["name"]
    return "Unknown author"


def get_homepage(manifest: PluginManifest) -> Optional[str]:
    """Homepage URL, falling back to the repository URL."""
    return _homepage_url(manifest) or _repository_url(manifest)


def get_help(manifest: PluginManifest) -> Optional[str]:
    """Help URL, falling back to the repository README, then the homepage."""
    if is_absolute_url(manifest.help):
        return manifest.help
    repository = _repository_url(manifest)
    if repository:
        return f"{repository}/blob/main/README.md"
    return _homepage_url(manifest)


def get_changelog(manifest: PluginManifest) -> Optional[str]:
    """Changelog URL, falling back to the repository CHANGELOG, then the homepage."""
    if is_absolute_url(manifest.changelog):
        return manifest.changelog
    repository = _repository_url(manifest)
    if repository:
        return f"{repository}/blob/main/CHANGELOG.md"
    return _homepage_url(manifest)


def get_funding(manifest: PluginManifest) -> Optional[str]:
    """First funding URL found in a string, an object with 'url', or a list of either."""
    funding = manifest.funding
    if not funding:
        return None
    entries = funding if isinstance(funding, list) else [funding]
    for entry in entries:
        if isinstance(entry, str) and is_absolute_url(entry):
            return entry
        if isinstance(entry, dict) and is_absolute_url(entry.get("url")):
            return entry["url"]
    return None
