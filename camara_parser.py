"""HTML extraction for the Câmara legislation search and detail pages."""

from __future__ import annotations

import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from crawl_config import BASE_DETAIL_URL
from errors import MalformedPageError
from models import DetailRecord, SearchResultItem

LOGGER = logging.getLogger(__name__)

# Any element of the results block; absent only when the page is not a results page.
_RESULTS_BLOCK_SELECTOR = '[class*="busca-resultados"]'
_NEXT_PAGE_LABEL = "Próxima"

_STATUS_PREFIX = re.compile(r"^Situação:\s*", re.IGNORECASE)
_ABSTRACT_PREFIX = re.compile(r"^EMENTA:\s*", re.IGNORECASE)
_ORIGIN_PREFIX = re.compile(r"^Origem:\s*", re.IGNORECASE)


def extract_search_results(body: bytes, page_url: str) -> tuple[list[SearchResultItem], str | None]:
    """Parse a search results page into items and the raw next-page href.

    Raises MalformedPageError when the page has no results block at all, which
    is distinct from a well-formed page listing zero items.
    """
    soup = _soup(body)
    if soup.select_one(_RESULTS_BLOCK_SELECTOR) is None:
        raise MalformedPageError(f"No search results block found on {page_url}")

    items: list[SearchResultItem] = []
    for element in soup.select(".busca-resultados__item"):
        anchor = element.select_one(".busca-resultados__cabecalho a")
        href = anchor.get("href") if anchor is not None else None
        if not href:
            LOGGER.warning("Skipping search result without a URL on %s", page_url)
            continue

        items.append(
            SearchResultItem(
                url=canonical_item_url(href),
                search_result_title=_text(anchor),
                search_result_description=_text(element.select_one(".busca-resultados__descricao")),
                search_result_status=_STATUS_PREFIX.sub(
                    "", _text(element.select_one(".busca-resultados__situacao"))
                ).strip(),
            )
        )

    return items, _next_page_href(soup)


def extract_detail(body: bytes, item_url: str) -> DetailRecord:
    """Parse a legislation detail page. Missing fields come back as None."""
    soup = _soup(body)
    root = soup.select_one(".dadosNorma")
    if root is None:
        root = soup

    original_link = root.select_one('a[href*="publicacaooriginal"]')
    original_href = original_link.get("href") if original_link is not None else None

    tags = [_text(el) for el in root.select(".grupoRetratil .corpo")]
    tags = [tag for tag in tags if tag]

    return DetailRecord(
        url=item_url,
        title=_text(root.select_one("h1")) or None,
        abstract=_ABSTRACT_PREFIX.sub("", _text(root.select_one(".ementa"))).strip() or None,
        original_text_url=urljoin(item_url, original_href) if original_href else None,
        source_proposal=_text(root.select_one('a[href*="Prop_Detalhe"]')) or None,
        origin=_labelled_section(root, "Origem", _ORIGIN_PREFIX),
        status=_labelled_section(root, "Situação", _STATUS_PREFIX),
        subject_tags=tags or None,
    )


def extract_original_text(body: bytes) -> str | None:
    """Return the law's original published text, if the page carries it."""
    return _text(_soup(body).select_one(".textoNorma")) or None


def canonical_item_url(href: str) -> str:
    href = href.strip()
    if href.startswith("http"):
        return href
    return urljoin(BASE_DETAIL_URL, href)


def _next_page_href(soup: BeautifulSoup) -> str | None:
    for link in soup.select(".pagination-list__nav-link"):
        if _NEXT_PAGE_LABEL not in link.get_text(strip=True):
            continue
        href = (link.get("href") or "").strip()
        if not href or href == "#":
            return None
        return href
    return None


def _labelled_section(root: Tag, label: str, prefix: re.Pattern[str]) -> str | None:
    """Text of the first ``.sessao`` whose own text starts with ``label``."""
    for section in root.select(".sessao"):
        own_text = "".join(section.find_all(string=True, recursive=False)).strip()
        if own_text.startswith(label):
            return prefix.sub("", section.get_text(" ", strip=True)).strip() or None
    return None


def _soup(body: bytes) -> BeautifulSoup:
    return BeautifulSoup(body.decode("utf-8", errors="replace"), "html.parser")


def _text(element: Tag | None) -> str:
    return element.get_text(" ", strip=True) if element is not None else ""
