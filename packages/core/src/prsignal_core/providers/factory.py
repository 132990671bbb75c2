from __future__ import annotations

from prsignal_core.errors import ConfigError
from prsignal_core.models import GitProvider as ProviderKind
from prsignal_core.providers.base import GitProvider


class ProviderFactory:
    """Create and cache one adapter per (provider, instance URL).

    A provider account may point at a self-hosted instance; otherwise the
    instance URL configured for that provider (or its public cloud) is used.
    """

    def __init__(self, config: dict | None = None):
        config = config or {}
        self._timeout = float(config.get("provider_timeout", 30))
        self._default_urls = {
            ProviderKind.GITHUB: config.get("github_base_url"),
            ProviderKind.GITLAB: config.get("gitlab_base_url"),
            ProviderKind.BITBUCKET: config.get("bitbucket_base_url"),
        }
        self._cache: dict[tuple[ProviderKind, str | None], GitProvider] = {}

    def create(self, provider: str, instance_url: str | None = None) -> GitProvider:
        try:
            kind = ProviderKind.parse(provider)
        except ValueError as e:
            raise ConfigError(str(e)) from e

        base_url = instance_url or self._default_urls[kind]
        key = (kind, base_url)
        if key not in self._cache:
            self._cache[key] = self._build(kind, base_url)
        return self._cache[key]

    def _build(self, kind: ProviderKind, base_url: str | None) -> GitProvider:
        # Imported lazily so a deployment watching only GitLab never imports PyGithub.
        if kind == ProviderKind.GITHUB:
            from prsignal_core.providers.github import GitHubProvider

            return GitHubProvider(base_url=base_url, timeout=self._timeout)
        if kind == ProviderKind.GITLAB:
            from prsignal_core.providers.gitlab import GitLabProvider

            return GitLabProvider(base_url=base_url, timeout=self._timeout)
        from prsignal_core.providers.bitbucket import BitbucketProvider

        return BitbucketProvider(base_url=base_url, timeout=self._timeout)

    def close(self) -> None:
        for provider in self._cache.values():
            provider.close()
        self._cache.clear()
