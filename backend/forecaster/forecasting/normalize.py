"""
Evidence URL canonicalization and source-level deduplication.
"""

from typing import List, Optional
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit

from forecaster.schemas.evidence import Evidence


DOMAIN_CAP = 5

TRACKING_PARAMS = {
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_content",
    "utm_term",
    "gclid",
    "fbclid",
    "igsh",
    "mc_cid",
    "mc_eid",
    "ref",
}

DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters left unescaped by encodeURIComponent
_COMPONENT_SAFE = "-_.!~*'()"


def _strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


def canonicalize_url(raw: str) -> Optional[str]:
    """
    Canonical form of a source URL, or None when it cannot be parsed.

    Lower-case host without ``www.``, no fragment, no tracking parameters,
    remaining parameters sorted by key, no trailing slash (except root) and
    no default port.
    """
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        parts = urlsplit(raw.strip())
        scheme = parts.scheme.lower()
        host = parts.hostname
        port = parts.port
    except ValueError:
        return None

    if scheme not in DEFAULT_PORTS or not host:
        return None

    host = _strip_www(host.lower())
    if not host:
        return None
    if ":" in host:
        host = f"[{host}]"

    netloc = host
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{host}:{port}"

    params = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in TRACKING_PARAMS
    ]
    params.sort(key=lambda kv: kv[0])
    query = "&".join(
        f"{quote(k, safe=_COMPONENT_SAFE)}={quote(v, safe=_COMPONENT_SAFE)}"
        for k, v in params
    )

    path = parts.path or "/"
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"

    return urlunsplit((scheme, netloc, path, query, ""))


def host_of(url: str) -> Optional[str]:
    """Hostname of an already canonical URL."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return _strip_www(host.lower()) if host else None


def normalize_evidence(items: List[Evidence], domain_cap: int = DOMAIN_CAP) -> List[Evidence]:
    """
    Canonicalize URLs and drop duplicate sources.

    An item whose canonical URLs overlap any URL already accepted is dropped
    entirely. At most ``domain_cap`` items are accepted per host (host of the
    first canonical URL); later items for a full host are dropped in input
    order. Unparseable URLs are discarded and count towards nothing.
    """
    seen_urls = set()
    host_counts = {}
    result: List[Evidence] = []

    for item in items:
        canonical = []
        for raw in item.urls:
            url = canonicalize_url(raw)
            if url and url not in canonical:
                canonical.append(url)

        if any(url in seen_urls for url in canonical):
            continue

        origin_host = host_of(canonical[0]) if canonical else None
        if origin_host:
            count = host_counts.get(origin_host, 0)
            if count >= domain_cap:
                continue
            host_counts[origin_host] = count + 1

        seen_urls.update(canonical)
        result.append(
            item.model_copy(
                update={
                    "urls": canonical,
                    "origin_id": origin_host or item.origin_id or "unknown",
                }
            )
        )

    return result
