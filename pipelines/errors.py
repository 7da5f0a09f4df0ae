"""Exception types raised by the ingestion pipelines."""


class IngestionError(Exception):
    """Base class for errors that abort ingestion of a single source."""


class SitemapFetchError(IngestionError):
    """Raised when the sitemap for a crawl cannot be fetched."""

    def __init__(self, sitemap_url: str, reason: str):
        self.sitemap_url = sitemap_url
        self.reason = reason
        super().__init__(f"Failed to fetch sitemap {sitemap_url}: {reason}")


class SourceFetchError(IngestionError):
    """Raised when a remote source document cannot be downloaded."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class SpecParseError(IngestionError):
    """Raised when an API specification is neither valid JSON nor YAML."""


class ContentNotFoundError(Exception):
    """Raised when no content region matches on a rendered page."""

    def __init__(self, url: str, selectors):
        self.url = url
        self.selectors = list(selectors)
        super().__init__(f"No content region found on {url} (tried {', '.join(self.selectors)})")
