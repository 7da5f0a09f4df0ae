"""Source configuration loader for DocIngest.

Loads and validates documentation source configurations from YAML files.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml

logger = logging.getLogger(__name__)

SOURCE_KINDS = ("sitemap", "llms_full", "openapi")


@dataclass
class SourceConfig:
    """Configuration for a documentation source.

    ``kind`` selects the ingestion path: ``sitemap`` crawls every page listed
    in the sitemap, ``llms_full`` splits a full-text dump fetched from
    ``location`` and ``openapi`` imports an API specification from
    ``location`` (file path or URL).
    """
    name: str
    kind: str = "sitemap"
    base_url: Optional[str] = None
    sitemap_url: Optional[str] = None
    location: Optional[str] = None
    # Accepted for compatibility; the crawl follows the sitemap list only.
    max_depth: int = 3
    max_pages: int = 500
    allowed_domains: List[str] = field(default_factory=list)
    exclude_patterns: List[str] = field(default_factory=list)
    docs_domains: List[str] = field(default_factory=list)
    delay_ms: int = 100
    timeout_ms: int = 30000
    concurrency: int = 3
    # Accepted for compatibility; robots.txt is not consulted.
    respect_robots_txt: bool = True
    framework: Optional[str] = None
    version: Optional[str] = None
    enabled: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.name:
            raise ValueError("Source name cannot be empty")

        if self.kind not in SOURCE_KINDS:
            raise ValueError(f"Invalid source kind: {self.kind}")

        if self.kind in ("sitemap", "llms_full") and not self.base_url:
            raise ValueError(f"Source '{self.name}' of kind {self.kind} needs a base_url")

        if self.kind in ("llms_full", "openapi") and not self.location:
            raise ValueError(f"Source '{self.name}' of kind {self.kind} needs a location")

        if self.max_pages <= 0:
            raise ValueError("max_pages must be positive")

        if self.delay_ms < 0:
            raise ValueError("delay_ms cannot be negative")

        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")

        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        if self.max_depth < 0 or self.max_depth > 10:
            raise ValueError("Depth must be between 0 and 10")

        for key in ('allowed_domains', 'docs_domains'):
            for entry in getattr(self, key):
                if '://' in entry:
                    raise ValueError(f"{key} entries are host names without a scheme, got '{entry}'")

        if self.base_url:
            self.base_url = self.base_url.rstrip('/')

    @property
    def resolved_sitemap_url(self) -> str:
        return self.sitemap_url or f"{self.base_url}/sitemap.xml"

    @property
    def resolved_docs_domains(self) -> List[str]:
        """Hosts (optionally with a path prefix) whose links count as internal."""
        if self.docs_domains:
            return list(self.docs_domains)

        domains = list(self.allowed_domains)
        if self.base_url:
            parsed = urlparse(self.base_url)
            base = (parsed.hostname or "") + parsed.path.rstrip('/')
            if base and base not in domains:
                domains.append(base)
        return domains

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defaults: Optional[Dict[str, Any]] = None) -> 'SourceConfig':
        """Create SourceConfig from dictionary, filling gaps from ``defaults``."""
        known = {f.name for f in fields(cls)}
        merged = {k: v for k, v in (defaults or {}).items() if k in known}
        merged.update(data)

        unknown = set(merged) - known
        if unknown:
            raise ValueError(f"Unknown source configuration keys: {', '.join(sorted(unknown))}")

        for key in ('allowed_domains', 'exclude_patterns', 'docs_domains'):
            if merged.get(key) is None:
                merged.pop(key, None)

        return cls(**merged)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            'name': self.name,
            'kind': self.kind,
            'max_depth': self.max_depth,
            'max_pages': self.max_pages,
            'delay_ms': self.delay_ms,
            'timeout_ms': self.timeout_ms,
            'concurrency': self.concurrency,
            'respect_robots_txt': self.respect_robots_txt,
            'enabled': self.enabled
        }

        for key in ('base_url', 'sitemap_url', 'location', 'framework', 'version'):
            value = getattr(self, key)
            if value:
                result[key] = value
        for key in ('allowed_domains', 'exclude_patterns', 'docs_domains'):
            value = getattr(self, key)
            if value:
                result[key] = list(value)

        return result


class SourceLoader:
    """Loads source configurations from YAML files."""

    def __init__(self, sources_dir: Optional[Path] = None, defaults: Optional[Dict[str, Any]] = None):
        """Initialize source loader.

        Args:
            sources_dir: Directory containing source YAML files.
                        Defaults to the directory of this file.
            defaults: Values applied to every source unless the YAML sets them
                      (typically the ``crawl`` section of the settings).
        """
        if sources_dir is None:
            sources_dir = Path(__file__).parent

        self.sources_dir = Path(sources_dir)
        self.defaults = defaults or {}
        self._cache: Dict[str, SourceConfig] = {}
        self._last_modified: Dict[str, float] = {}

    def load_file(self, yaml_file: Path) -> Optional[SourceConfig]:
        """Load a source configuration from an explicit YAML path."""
        yaml_file = Path(yaml_file)
        source_name = yaml_file.stem

        if not yaml_file.exists():
            logger.warning(f"Source configuration not found: {yaml_file}")
            return None

        # Check if we need to reload from cache
        cache_key = str(yaml_file.resolve())
        current_mtime = yaml_file.stat().st_mtime
        if (cache_key in self._cache and
                self._last_modified.get(cache_key, -1) >= current_mtime):
            return self._cache[cache_key]

        try:
            with open(yaml_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)

            if not data:
                logger.error(f"Empty or invalid YAML file: {yaml_file}")
                return None

            # Ensure name matches filename
            if 'name' not in data:
                data['name'] = source_name
            elif data['name'] != source_name:
                logger.warning(f"Source name mismatch in {yaml_file}: {data['name']} != {source_name}")
                data['name'] = source_name

            config = SourceConfig.from_dict(data, self.defaults)

            self._cache[cache_key] = config
            self._last_modified[cache_key] = current_mtime

            logger.info(f"Loaded source configuration: {source_name}")
            return config

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML file {yaml_file}: {e}")
            return None
        except (ValueError, TypeError) as e:
            logger.error(f"Invalid source configuration in {yaml_file}: {e}")
            return None

    def load_source_config(self, source_name: str) -> Optional[SourceConfig]:
        """Load configuration for a specific source.

        Args:
            source_name: Name of the source (without .yaml extension)

        Returns:
            SourceConfig if found and valid, None otherwise
        """
        return self.load_file(self.sources_dir / f"{source_name}.yaml")

    def load_all_sources(self) -> Dict[str, SourceConfig]:
        """Load all source configurations from the sources directory."""
        sources = {}

        if not self.sources_dir.exists():
            logger.warning(f"Sources directory not found: {self.sources_dir}")
            return sources

        for yaml_file in sorted(self.sources_dir.glob("*.yaml")):
            config = self.load_file(yaml_file)
            if config:
                sources[config.name] = config

        logger.info(f"Loaded {len(sources)} source configurations")
        return sources

    def get_enabled_sources(self) -> Dict[str, SourceConfig]:
        """Get all enabled source configurations."""
        all_sources = self.load_all_sources()
        return {name: config for name, config in all_sources.items() if config.enabled}

