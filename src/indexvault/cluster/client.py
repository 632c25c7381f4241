"""Cluster client contract and the Elasticsearch-backed implementation."""

import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

import elasticsearch
from elasticsearch import Elasticsearch

from indexvault.archive.serializer import MsgspecJsonSerializer, PayloadSerializer
from indexvault.cluster.retry import build_retrying
from indexvault.config.models import ClusterConfig
from indexvault.constants import (
    ALL_INDICES,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_MAX_WAIT_SECONDS,
    DEFAULT_RETRY_MIN_WAIT_SECONDS,
    DEFAULT_SCROLL_SIZE,
    DEFAULT_TYPE,
    TRANSIENT_HTTP_STATUSES,
)
from indexvault.exceptions import ClusterQueryError, ClusterUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Settings a cluster assigns at index creation; replaying them elsewhere fails
IDENTITY_SETTINGS = (
    "index.uuid",
    "index.creation_date",
    "index.provided_name",
    "index.version.",
    "index.resize.source.",
)


@dataclass
class ScrollPage:
    """One page of a scrolled search."""

    scroll_id: str | None
    hits: list[dict[str, Any]] = field(default_factory=list)
    took: int = 0

    @classmethod
    def from_response(cls, response: Mapping[str, Any]) -> "ScrollPage":
        return cls(
            scroll_id=response.get("_scroll_id"),
            hits=list(response.get("hits", {}).get("hits", [])),
            took=int(response.get("took", 0)),
        )


class ClusterClient(Protocol):
    """Protocol for the cluster lookups and paginated search used by exports."""

    def resolve_settings(self, indices: Sequence[str]) -> dict[str, str]:
        """Resolve index names/patterns to ``{concrete index: settings payload}``.

        An empty sequence resolves every index.
        """
        ...

    def resolve_mapping(self, index: str, types: frozenset[str] | None) -> dict[str, str]:
        """Return ``{type: mapping payload}`` for one index, filtered by ``types``."""
        ...

    def resolve_aliases(self, index: str) -> dict[str, str]:
        """Return ``{alias: definition payload}`` for one index."""
        ...

    def search(
        self,
        query: Mapping[str, Any] | None,
        indices: Sequence[str],
        types: frozenset[str],
        scroll_timeout: str,
        size: int = DEFAULT_SCROLL_SIZE,
    ) -> ScrollPage:
        """Open a scrolled search and return its first page."""
        ...

    def scroll_next(self, scroll_id: str, scroll_timeout: str) -> ScrollPage:
        """Fetch the next page of an open scroll."""
        ...

    def clear_scroll(self, scroll_id: str) -> None:
        """Release a scroll context (best effort)."""
        ...


def filter_settings(settings: Mapping[str, Any]) -> dict[str, Any]:
    """Drop identity settings from a flat settings map."""
    return {
        key: value
        for key, value in settings.items()
        if not any(key == name or key.startswith(name) for name in IDENTITY_SETTINGS)
    }


def build_search_body(
    query: Mapping[str, Any] | None,
    types: frozenset[str],
    size: int,
) -> dict[str, Any]:
    """Build the body of a scrolled export search.

    Args:
        query: Raw search body override, or None for match-all
        types: Type names to restrict to (empty for all types)
        size: Page size when the body does not set one

    Returns:
        Search body with ``_doc`` sort for the cheapest scroll order. The
        default type adds no filter; other types keep a ``_type`` filter.
    """
    body: dict[str, Any] = dict(query) if query else {"query": {"match_all": {}}}
    body.setdefault("query", {"match_all": {}})
    # Every document of a typeless index is of the default type
    types = types - {DEFAULT_TYPE}
    if types:
        logger.warning(
            f"Type restriction {sorted(types)} only matches documents on clusters "
            f"that still index _type; typeless indices export nothing for it"
        )
        body["query"] = {
            "bool": {
                "must": [body["query"]],
                "filter": [{"terms": {"_type": sorted(types)}}],
            }
        }
    body.setdefault("size", size)
    body.setdefault("sort", ["_doc"])
    return body


def is_typed_mapping(mappings: Mapping[str, Any]) -> bool:
    """True when mappings are keyed by type name, each holding its own properties.

    Typeless mappings keep fields and options such as ``dynamic_templates``,
    ``_source`` or ``runtime`` at the top level.
    """
    if not mappings or "properties" in mappings:
        return False
    return all(isinstance(body, Mapping) and "properties" in body for body in mappings.values())


class ElasticsearchClusterClient:
    """ClusterClient backed by the official elasticsearch client, with lazy init."""

    def __init__(
        self,
        config: ClusterConfig,
        es: Elasticsearch | None = None,
        serializer: PayloadSerializer | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_min_wait: float = DEFAULT_RETRY_MIN_WAIT_SECONDS,
        retry_max_wait: float = DEFAULT_RETRY_MAX_WAIT_SECONDS,
    ):
        """Initialize client.

        Args:
            config: Cluster connection configuration
            es: Pre-built Elasticsearch client (built from config when None)
            serializer: Payload serializer for settings/mappings/aliases
            max_retries: Attempts for transient failures
            retry_min_wait: Minimum back-off in seconds
            retry_max_wait: Maximum back-off in seconds
        """
        self.config = config
        self.serializer = serializer or MsgspecJsonSerializer()
        self.max_retries = max_retries
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait
        self._es = es

    def _build_es(self) -> Elasticsearch:
        """Build the Elasticsearch client from configuration."""
        kwargs: dict[str, Any] = {
            "request_timeout": self.config.timeout,
            "verify_certs": self.config.verify_certs,
        }
        if self.config.api_key:
            kwargs["api_key"] = self.config.api_key
        elif self.config.username:
            kwargs["basic_auth"] = (self.config.username, self.config.password or "")
        return Elasticsearch(self.config.hosts, **kwargs)

    @property
    def es(self) -> Elasticsearch:
        """Lazy-load the Elasticsearch client on first access."""
        if self._es is None:
            self._es = self._build_es()
        return self._es

    def _call(self, action: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a cluster call with error translation and transient retries."""
        retrying = build_retrying(
            max_attempts=self.max_retries,
            min_wait=self.retry_min_wait,
            max_wait=self.retry_max_wait,
        )

        def attempt() -> T:
            with translate_errors(action):
                return fn(*args, **kwargs)

        return retrying(attempt)

    def ping(self) -> dict[str, Any]:
        """Return cluster info, raising ClusterQueryError when unreachable."""
        return dict(self._call("info", self.es.info))

    def resolve_settings(self, indices: Sequence[str]) -> dict[str, str]:
        names = [name for name in indices if name != ALL_INDICES]
        response = self._call(
            "get settings",
            self.es.indices.get_settings,
            index=",".join(names) if names else ALL_INDICES,
            flat_settings=True,
        )
        return {
            index: self.serializer.encode(filter_settings(body.get("settings", {})))
            for index, body in dict(response).items()
        }

    def resolve_mapping(self, index: str, types: frozenset[str] | None) -> dict[str, str]:
        response = dict(self._call("get mapping", self.es.indices.get_mapping, index=index))
        body = response.get(index) or next(iter(response.values()), {})
        mappings = body.get("mappings", {})
        by_type = dict(mappings) if is_typed_mapping(mappings) else {DEFAULT_TYPE: mappings}
        return {
            type_name: self.serializer.encode(mapping)
            for type_name, mapping in by_type.items()
            if not types or type_name in types
        }

    def resolve_aliases(self, index: str) -> dict[str, str]:
        response = dict(self._call("get aliases", self.es.indices.get_alias, index=index))
        body = response.get(index) or next(iter(response.values()), {})
        return {
            alias: self.serializer.encode(definition)
            for alias, definition in body.get("aliases", {}).items()
        }

    def search(
        self,
        query: Mapping[str, Any] | None,
        indices: Sequence[str],
        types: frozenset[str],
        scroll_timeout: str,
        size: int = DEFAULT_SCROLL_SIZE,
    ) -> ScrollPage:
        names = [name for name in indices if name != ALL_INDICES]
        body = build_search_body(query, types, size)
        response = self._call(
            "search",
            self.es.search,
            index=",".join(names) if names else ALL_INDICES,
            scroll=scroll_timeout,
            **body,
        )
        return ScrollPage.from_response(dict(response))

    def scroll_next(self, scroll_id: str, scroll_timeout: str) -> ScrollPage:
        response = self._call("scroll", self.es.scroll, scroll_id=scroll_id, scroll=scroll_timeout)
        return ScrollPage.from_response(dict(response))

    def clear_scroll(self, scroll_id: str) -> None:
        try:
            self._call("clear scroll", self.es.clear_scroll, scroll_id=scroll_id)
        except ClusterQueryError as e:
            logger.warning(f"Failed to clear scroll context: {e}")


@contextmanager
def translate_errors(action: str) -> Iterator[None]:
    """Map elasticsearch client errors onto the ClusterQueryError hierarchy.

    Args:
        action: Short description of the call, used in messages

    Raises:
        ClusterUnavailableError: For connection errors, timeouts and 429/5xx
        ClusterQueryError: For every other API error
    """
    try:
        yield
    except elasticsearch.ApiError as e:
        status = e.meta.status if e.meta is not None else None
        if status in TRANSIENT_HTTP_STATUSES:
            raise ClusterUnavailableError(f"Cluster busy during {action}: {e}", status) from e
        raise ClusterQueryError(f"Failed to {action}: {e}") from e
    except elasticsearch.TransportError as e:
        raise ClusterUnavailableError(f"Cannot reach cluster during {action}: {e}") from e
