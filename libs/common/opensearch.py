"""OpenSearch client construction and filter translation.

The OpenSearch k-NN reader and the OpenSearch BM25 reader share one index
(``rag_chunks`` by default) whose documents carry the chunk id plus the
owning document's ``category``, ``tags`` and ``uploaded_at`` so filters can be
applied inside the engine.
"""

from typing import Any, Dict, List, Optional

from opensearchpy import OpenSearch

from .config import BaseConfig
from .models import SearchFilter


def create_opensearch_client(
    hosts: List[str],
    username: Optional[str] = None,
    password: Optional[str] = None,
    verify_certs: bool = False,
    ssl_assert_hostname: bool = False,
    ssl_show_warn: bool = False,
) -> OpenSearch:
    """Create a synchronous OpenSearch client."""
    return OpenSearch(
        hosts=hosts,
        http_auth=(username, password) if username and password else None,
        verify_certs=verify_certs,
        ssl_assert_hostname=ssl_assert_hostname,
        ssl_show_warn=ssl_show_warn,
        use_ssl=hosts[0].startswith("https"),
    )


def create_opensearch_client_from_config(config: BaseConfig) -> OpenSearch:
    """Create an OpenSearch client from service configuration."""
    return create_opensearch_client(
        hosts=[host.strip() for host in config.rag_opensearch_hosts.split(",") if host.strip()],
        username=config.rag_opensearch_username,
        password=config.rag_opensearch_password,
        verify_certs=config.rag_opensearch_verify_certs,
        ssl_assert_hostname=config.rag_opensearch_ssl_assert_hostname,
        ssl_show_warn=config.rag_opensearch_ssl_show_warn,
    )


def build_filter_clauses(search_filter: Optional[SearchFilter]) -> List[Dict[str, Any]]:
    """Translate a ``SearchFilter`` into bool-query ``filter`` clauses."""
    clauses: List[Dict[str, Any]] = []
    if search_filter is None:
        return clauses

    if search_filter.category is not None:
        clauses.append({"term": {"category": search_filter.category}})

    if search_filter.tags:
        clauses.append({"terms": {"tags": sorted(search_filter.tags)}})

    date_range = search_filter.date_range
    if date_range is not None:
        bounds: Dict[str, str] = {}
        if date_range.start is not None:
            bounds["gte"] = date_range.start.isoformat()
        if date_range.end is not None:
            bounds["lte"] = date_range.end.isoformat()
        if bounds:
            clauses.append({"range": {"uploaded_at": bounds}})

    return clauses
