"""Resolution of index/type text specifications into immutable mappings."""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from indexvault.constants import ALL_INDICES

IndexMap = Mapping[str, frozenset[str]]


def split_spec(spec: str | None) -> frozenset[str]:
    """Split a comma-delimited spec into its distinct, trimmed tokens."""
    if not spec:
        return frozenset()
    return frozenset(token.strip() for token in spec.split(",") if token.strip())


def build_index_map(index_spec: str | None, type_spec: str | None) -> IndexMap:
    """Map every index token to the type token set (empty set = all types).

    An empty index spec means ``_all``. Wildcards and aliases are left as-is;
    the cluster's search matching expands them.

    Args:
        index_spec: Comma-delimited index names or patterns
        type_spec: Comma-delimited type names

    Returns:
        Read-only mapping of index token to frozenset of type names
    """
    indices = split_spec(index_spec) or frozenset({ALL_INDICES})
    types = split_spec(type_spec)
    return MappingProxyType({index: types for index in indices})


def resolve_metadata_scope(
    index_spec: str | None,
    type_spec: str | None,
    index_types: Iterable[str] | None = None,
) -> IndexMap:
    """Resolve the indices and types whose metadata should be exported.

    Starts from ``build_index_map`` and merges explicit ``index`` or
    ``index/type`` tokens. A bare index adds an unrestricted entry; an
    ``index/type`` token adds its type. ``_all`` never appears as a key: the
    blanket metadata pass covers it, and an empty scope means every index.

    Args:
        index_spec: Comma-delimited index names or patterns
        type_spec: Comma-delimited type names
        index_types: Explicit ``index[/type]`` tokens

    Returns:
        Read-only mapping of index name to frozenset of type names
    """
    scope: dict[str, set[str]] = {
        index: set(types) for index, types in build_index_map(index_spec, type_spec).items()
    }
    for token in index_types or ():
        if not token:
            continue
        index, _, type_name = token.strip().partition("/")
        if not index or index == ALL_INDICES:
            continue
        types = scope.setdefault(index, set())
        if type_name:
            types.add(type_name)
    scope.pop(ALL_INDICES, None)
    return MappingProxyType({index: frozenset(types) for index, types in scope.items()})
