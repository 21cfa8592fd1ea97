"""URL helpers: domain and page naming, substring filters, sitemap expansion."""

import logging
import re
import xml.etree.ElementTree as ET
from urllib.parse import urlparse

import requests

from .artifacts import LOGS_DIR_NAME
from .models import CaptureConfig

log = logging.getLogger(__name__)


USER_AGENT = 'page-shooter/1.0 (playwright)'
SITEMAP_ACCEPT = 'application/xml,text/xml,text/plain,*/*'
FETCH_TIMEOUT_S = 30

_LOC_RE = re.compile(r'<loc>\s*([^<\s]+)\s*</loc>', re.IGNORECASE)
_DOMAIN_ONLY_RE = re.compile(r'^https?://[^/]+/?$', re.IGNORECASE)

# Run-directory entries a page directory must never shadow.
RESERVED_PAGE_NAMES = frozenset({LOGS_DIR_NAME})


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

def ensure_scheme(url: str) -> str:
    if not re.match(r'^https?://', url, flags=re.IGNORECASE):
        return 'https://' + url
    return url


def get_domain(url: str) -> str:
    """Hostname without a leading www., or 'unknown-domain'."""
    try:
        host = urlparse(url).hostname or ''
    except ValueError:
        return 'unknown-domain'
    host = re.sub(r'^www\.', '', host)
    return host or 'unknown-domain'


def get_page_name(url: str) -> str:
    """Slug from the URL path; the site root is 'home'."""
    try:
        path = urlparse(url).path
    except ValueError:
        return 'page'
    path = path.rstrip('/')
    if not path:
        return 'home'
    slug = re.sub(r'[^\w]+', '-', path.lstrip('/'))
    slug = re.sub(r'-+', '-', slug).strip('-').lower()
    return slug or 'page'


def unique_page_name(url: str, used: set) -> str:
    """Page name not yet in ``used``; claims it before returning."""
    base = get_page_name(url)
    name = base
    n = 2
    while name in used or name in RESERVED_PAGE_NAMES:
        name = f'{base}-{n}'
        n += 1
    used.add(name)
    return name


def looks_like_domain_only(url: str) -> bool:
    return bool(_DOMAIN_ONLY_RE.match(url))


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def apply_url_filters(
    urls: list,
    include: str = '',
    exclude: str = '',
    limit: int = 0,
    same_host_only: bool = False,
    base_host: str = '',
) -> list:
    """Filter by host, include/exclude substring, then cap. Order is preserved."""
    out = list(urls)

    if same_host_only and base_host:
        wanted = re.sub(r'^www\.', '', base_host)
        out = [u for u in out if get_domain(u) == wanted]

    if include:
        out = [u for u in out if include in u]
    if exclude:
        out = [u for u in out if exclude not in u]
    if limit and limit > 0:
        out = out[:limit]

    return out


# ---------------------------------------------------------------------------
# Sitemaps
# ---------------------------------------------------------------------------

def fetch_text(url: str, session: requests.Session = None) -> str:
    """GET a URL and return the body; raises RuntimeError on a non-2xx status."""
    http = session or requests
    response = http.get(
        url,
        headers={'User-Agent': USER_AGENT, 'Accept': SITEMAP_ACCEPT},
        timeout=FETCH_TIMEOUT_S,
        allow_redirects=True,
    )
    if not response.ok:
        raise RuntimeError(f'Fetch failed {response.status_code} for {url}')
    return response.text


def _dedupe(items: list) -> list:
    return list(dict.fromkeys(items))


def parse_sitemap_locs(xml: str) -> list:
    """All <loc> values in document order, de-duplicated."""
    try:
        root = ET.fromstring(xml.strip())
    except ET.ParseError as exc:
        log.debug('Sitemap is not well-formed XML (%s), falling back to regex', exc)
        return _dedupe(m.strip() for m in _LOC_RE.findall(xml))
    locs = []
    for elem in root.iter():
        tag = elem.tag.rsplit('}', 1)[-1].lower()
        if tag == 'loc' and elem.text and elem.text.strip():
            locs.append(elem.text.strip())
    return _dedupe(locs)


def is_sitemap_index(xml: str) -> bool:
    return re.search(r'<sitemapindex\b', xml, re.IGNORECASE) is not None


def expand_sitemap(sitemap_url: str, session: requests.Session = None) -> list:
    """Page URLs from a sitemap, following a sitemap index one level down.

    A failing child sitemap is logged and skipped; a failing top-level
    sitemap raises.
    """
    xml = fetch_text(sitemap_url, session)
    locs = parse_sitemap_locs(xml)

    if is_sitemap_index(xml):
        expanded = []
        for child in (u for u in locs if u.endswith('.xml')):
            try:
                expanded.extend(parse_sitemap_locs(fetch_text(child, session)))
            except (requests.RequestException, RuntimeError) as exc:
                log.warning('Skipping child sitemap %s: %s', child, exc)
        locs = _dedupe(expanded)

    return [u for u in locs if not u.endswith('.xml')]


def sitemap_url_for(value: str) -> str:
    if 'sitemap.xml' in value:
        return value
    return ensure_scheme(value).rstrip('/') + '/sitemap.xml'


def _resolve_from_sitemap(sitemap_url: str, config: CaptureConfig, session) -> list:
    base_host = get_domain(sitemap_url)
    log.info('Fetching sitemap: %s', sitemap_url)
    found = expand_sitemap(sitemap_url, session)
    filtered = apply_url_filters(
        found,
        include=config.include,
        exclude=config.exclude,
        limit=config.limit,
        same_host_only=config.same_host_only,
        base_host=base_host,
    )
    log.info('Sitemap URLs queued: %d (of %d found)', len(filtered), len(found))
    return filtered


def resolve_urls(urls: list, config: CaptureConfig, session: requests.Session = None) -> list:
    """Turn the user's input into the ordered list of pages to capture.

    - ``config.sitemap`` set: expand that sitemap.
    - a single bare domain root: expand ``<root>/sitemap.xml``.
    - otherwise: the explicit list, as given.
    """
    if config.sitemap:
        return _resolve_from_sitemap(sitemap_url_for(config.sitemap), config, session)

    cleaned = [ensure_scheme(u.strip()) for u in urls if u and u.strip()]
    if len(cleaned) == 1 and looks_like_domain_only(cleaned[0]):
        return _resolve_from_sitemap(sitemap_url_for(cleaned[0]), config, session)

    return cleaned
