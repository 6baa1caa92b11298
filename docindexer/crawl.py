from __future__ import annotations

import logging
import re
from collections import deque
from dataclasses import dataclass, field
from urllib.parse import urldefrag, urljoin, urlparse

import httpx

from .extract import UNTITLED, extract_page
from .sections import CONTENT, Block

log = logging.getLogger(__name__)

USER_AGENT = "docindexer/0.1"
EXCLUDED_EXTENSIONS = (".pdf", ".zip", ".png", ".jpg")
MIN_PAGE_CHARS = 20


@dataclass(frozen=True)
class ScrapedPage:
  url: str
  title: str
  html: str
  type: str  # "api" | "guide" | "example"
  blocks: list[Block] = field(default_factory=list)


def _normalize(url: str) -> str:
  url, _frag = urldefrag(url)
  return url.rstrip("/")


def page_type(url: str) -> str:
  if "/examples/" in url or "/example" in url:
    return "example"
  if "/api/" in url or "/reference/" in url:
    return "api"
  return "guide"


def url_prefixes(start_urls: list[str]) -> list[str]:
  """
  Crawl roots as origin + path, so every page below a start URL is in scope.
  """
  prefixes: list[str] = []
  for url in start_urls:
    p = urlparse(url)
    if p.scheme not in ("http", "https") or not p.netloc:
      log.warning("Invalid start URL, skipping: %s", url)
      continue
    prefix = f"{p.scheme}://{p.netloc}{p.path}".rstrip("/")
    if prefix not in prefixes:
      prefixes.append(prefix)
  return prefixes


def in_scope(url: str, prefixes: list[str]) -> bool:
  url = _normalize(url)
  if url.lower().endswith(EXCLUDED_EXTENSIONS):
    return False
  return any(url == p or url.startswith(p + "/") for p in prefixes)


def extract_links(base_url: str, html: str) -> list[str]:
  hrefs = re.findall(r'href=["\'](.*?)["\']', html, flags=re.IGNORECASE)
  seen: set[str] = set()
  out: list[str] = []
  for h in hrefs:
    h = h.strip()
    if not h or h.startswith(("#", "mailto:", "javascript:")):
      continue
    u = _normalize(urljoin(base_url, h))
    if u not in seen:
      seen.add(u)
      out.append(u)
  return out


async def fetch_html(client: httpx.AsyncClient, url: str) -> tuple[int | None, str | None]:
  try:
    r = await client.get(url, timeout=30.0, follow_redirects=True)
  except httpx.HTTPError as e:
    log.warning("Fetch failed for %s: %s", url, e)
    return None, None
  ct = (r.headers.get("content-type") or "").lower()
  if r.status_code >= 400:
    return r.status_code, None
  if "text/html" not in ct and "application/xhtml+xml" not in ct:
    return r.status_code, None
  return r.status_code, r.text


async def scrape_pages(
  start_urls: list[str],
  max_pages: int = 100,
  client: httpx.AsyncClient | None = None,
) -> list[ScrapedPage]:
  """
  Breadth-first crawl below the start URLs. At most max_pages URLs are
  requested; pages with too little text are skipped.
  """
  prefixes = url_prefixes(start_urls)
  queue = deque(dict.fromkeys(_normalize(u) for u in start_urls if in_scope(u, prefixes)))
  seen = set(queue)
  pages: list[ScrapedPage] = []
  requested = 0

  own_client = client is None
  if own_client:
    client = httpx.AsyncClient(headers={"User-Agent": USER_AGENT})

  try:
    while queue and requested < max_pages:
      url = queue.popleft()
      requested += 1
      log.info("Scraping: %s", url)

      status, html = await fetch_html(client, url)
      if not html:
        log.info("No HTML for %s (status %s)", url, status)
        continue

      try:
        title, blocks = extract_page(html)
      except RecursionError:
        log.warning("Markup nested too deeply to extract: %s", url)
        title, blocks = UNTITLED, []
      text_len = sum(len(b.text) for b in blocks if b.kind == CONTENT)
      log.info("Extracted - Title: %r, Content length: %d", title[:50], text_len)

      if text_len < MIN_PAGE_CHARS:
        log.warning("Skipping page - insufficient content: %s", url)
      else:
        pages.append(ScrapedPage(url=url, title=title, html=html, type=page_type(url), blocks=blocks))

      for link in extract_links(url, html):
        if link in seen or not in_scope(link, prefixes):
          continue
        seen.add(link)
        queue.append(link)
  finally:
    if own_client:
      await client.aclose()

  log.info("Scraped %d pages", len(pages))
  return pages
