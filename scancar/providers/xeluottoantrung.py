"""Xe Lướt Toàn Trung: paginated HTML product list."""

import re
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup

from scancar.models.data_models import Attribute, Listing
from scancar.processor.brand import infer_brand
from scancar.processor.normalizer import clean_text
from scancar.providers.base import Provider, add_unique

_PAGE_PARAM_RE = re.compile(r"[?&]p=(\d+)", re.IGNORECASE)


class XeLuotToanTrungProvider(Provider):
    id = "xeluottoantrung"
    name = "Xe Lướt Toàn Trung"
    base_url = "https://xeluottoantrung.com/"
    allowed_hosts = frozenset({"xeluottoantrung.com", "www.xeluottoantrung.com"})

    list_path = "san-pham"
    max_pages = 50

    @property
    def list_url(self) -> str:
        return self.url(self.list_path)

    async def fetch_listings(self) -> List[Listing]:
        results: List[Listing] = []
        seen = set()

        listings, total_pages = await self._fetch_page(1)
        add_unique(results, seen, listings)

        for page in range(2, min(total_pages, self.max_pages) + 1):
            listings, _ = await self._fetch_page(page)
            if not listings:
                break
            add_unique(results, seen, listings)
        return results

    async def _fetch_page(self, page: int) -> Tuple[List[Listing], int]:
        url = self.list_url if page == 1 else f"{self.list_url}?p={page}"
        soup = BeautifulSoup(await self.get_text(url), "html.parser")
        total_pages = self.parse_total_pages(soup) if page == 1 else 1
        return self.parse_listings(soup), total_pages

    def parse_listings(self, soup: BeautifulSoup) -> List[Listing]:
        listings = []
        for index, node in enumerate(soup.select(".wap_item > .item")):
            listing = self._parse_item(node, index)
            if listing is not None:
                listings.append(listing)
        return listings

    def _parse_item(self, node, index: int) -> Optional[Listing]:
        anchor = node.select_one("h3.name_sp a")
        title = clean_text(anchor.get_text()) if anchor else ""
        if not title:
            return None

        slug = anchor.get("href") or ""
        image = node.select_one(".img_sp img")
        thumbnail = (image.get("data-lazy") or image.get("src") or "") if image else ""
        price = node.select_one(".gia_sp b")

        attributes = []
        for field in node.select(".mota ul li"):
            icon = field.find("img")
            label = clean_text(icon.get("alt") if icon else "") or "Thông tin"
            value = clean_text(field.get_text(" "))
            if value:
                attributes.append(Attribute(label=label, value=value))

        id_node = node.select_one("p.id_ss")
        upstream_id = (id_node.get("data-id") if id_node else "") or slug or str(index)
        brand = infer_brand([slug, title])

        return Listing(
            id=f"{self.id}-{upstream_id}",
            source=self.id,
            source_name=self.name,
            title=title,
            price_text=clean_text(price.get_text()) if price else "",
            thumbnail=self.url(thumbnail),
            url=self.url(slug),
            attributes=tuple(attributes),
            brand=brand.brand,
            brand_slug=brand.slug,
        )

    @staticmethod
    def parse_total_pages(soup: BeautifulSoup) -> int:
        """Highest page number among the pagination links, at least 1."""
        max_page = 1
        for link in soup.select(".pagination-home .page-link"):
            text = clean_text(link.get_text())
            if text.isdigit():
                max_page = max(max_page, int(text))
            match = _PAGE_PARAM_RE.search(link.get("href") or "")
            if match:
                max_page = max(max_page, int(match.group(1)))
        return max_page
