"""
Server-side page audit.

Fetches a page and reports issues in the same format the tracker script
posts to ``report-issues``, so the scheduler can refresh recommendations
for sites whose visitors have not triggered the tracker lately.
"""
import logging
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup
from django.utils import timezone

from .exceptions import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

AUDIT_VERSION = 'server-audit-1.0'
HEADERS = {
    'User-Agent': 'Mozilla/5.0 (compatible; VisibilityHubAudit/1.0)',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
}
MIN_INTERNAL_LINKS = 3
MIN_CONTENT_LENGTH = 1000


def _issue(category, issue_type, description, priority, url):
    return {
        'category': category,
        'type': issue_type,
        'description': description,
        'priority': priority,
        'url': url,
        'timestamp': timezone.now().isoformat(),
    }


def analyze_html(html, url):
    """Return ``(page_data, issues)`` for an HTML document."""
    soup = BeautifulSoup(html, 'html.parser')
    issues = []

    titles = soup.find_all('title')
    title = titles[0].get_text(strip=True) if titles else ''
    if not title:
        issues.append(_issue('meta', 'missing_title', 'Page is missing a title tag', 'high', url))
    elif len(title) < 30:
        issues.append(_issue('meta', 'short_title', f'Title is too short ({len(title)} chars)', 'medium', url))
    elif len(title) > 60:
        issues.append(_issue('meta', 'long_title', f'Title is too long ({len(title)} chars)', 'medium', url))
    if len(titles) > 1:
        issues.append(_issue('meta', 'duplicate_title', f'Found {len(titles)} title tags', 'high', url))

    descriptions = soup.find_all('meta', attrs={'name': 'description'})
    description = (descriptions[0].get('content') or '').strip() if descriptions else ''
    if not description:
        issues.append(_issue('meta', 'missing_description', 'Page is missing meta description', 'high', url))
    elif len(description) < 120:
        issues.append(_issue('meta', 'short_description',
                             f'Meta description is too short ({len(description)} chars)', 'medium', url))
    elif len(description) > 160:
        issues.append(_issue('meta', 'long_description',
                             f'Meta description is too long ({len(description)} chars)', 'medium', url))

    h1s = soup.find_all('h1')
    if not h1s:
        issues.append(_issue('h1', 'missing_h1', 'Page is missing H1 tag', 'high', url))
    elif len(h1s) > 1:
        issues.append(_issue('h1', 'multiple_h1', f'Found {len(h1s)} H1 tags', 'high', url))

    for img in soup.find_all('img'):
        src = urljoin(url, img.get('src') or '')
        alt = img.get('alt')
        if alt is None:
            issues.append(_issue('altText', 'missing_alt', f'Image missing alt attribute: {src}', 'medium', url))
        elif not alt.strip():
            issues.append(_issue('altText', 'empty_alt', f'Image has empty alt attribute: {src}', 'low', url))

    host = urlparse(url).netloc
    internal_links = 0
    for link in soup.find_all('a', href=True):
        href = link['href']
        if href.startswith('#'):
            continue
        if href.startswith('/') or urlparse(href).netloc == host:
            internal_links += 1
    body_text = soup.body.get_text(' ', strip=True) if soup.body else ''
    if internal_links < MIN_INTERNAL_LINKS and len(body_text) > MIN_CONTENT_LENGTH:
        issues.append(_issue('internalLinks', 'insufficient_internal_links',
                             'Page could benefit from more internal links', 'low', url))

    page_data = {
        'url': url,
        'title': title,
        'description': description,
        'h1': h1s[0].get_text(strip=True) if h1s else '',
        'internalLinks': internal_links,
    }
    return page_data, issues


def audit_page(url, session=None, timeout=15):
    """
    Fetch ``url`` and analyze it.

    Returns ``{"pageUrl", "pageData", "issues"}``; raises UpstreamError
    when the page cannot be fetched.
    """
    if urlparse(url).scheme not in ('http', 'https'):
        raise ValidationError(f'Unsupported URL for audit: {url}')
    session = session or requests.Session()
    try:
        response = session.get(url, headers=HEADERS, timeout=timeout)
    except requests.RequestException as e:
        raise UpstreamError(f'Could not fetch {url}: {e}') from e
    if not response.ok:
        raise UpstreamError(f'Could not fetch {url}: HTTP {response.status_code}')

    page_data, issues = analyze_html(response.text, response.url or url)
    logger.info("Audited %s: %d issues", url, len(issues))
    return {'pageUrl': url, 'pageData': page_data, 'issues': issues}
