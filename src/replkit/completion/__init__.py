"""Tab completion engine and completion sources."""

from replkit.completion.sources import (
    AsyncSource,
    CompletionSource,
    StaticSource,
    SyncSource,
    as_source,
    resolve_source,
)
from replkit.completion.engine import (
    Autocomplete,
    CompletionInput,
    filter_data,
    get_match,
    match_candidates,
    parse_input,
)

__all__ = [
    # Sources
    "AsyncSource",
    "CompletionSource",
    "StaticSource",
    "SyncSource",
    "as_source",
    "resolve_source",
    # Engine
    "Autocomplete",
    "CompletionInput",
    "filter_data",
    "get_match",
    "match_candidates",
    "parse_input",
]
