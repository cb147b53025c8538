"""Bonbanh: dealer ("salon") directory for Đắk Lắk, one extra page per salon.

Salon pages are fetched through a bounded worker pool. A salon that fails
is logged and skipped; only a failure of the directory page fails the
source.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Tuple
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from scancar.fetcher.worker_pool import BoundedFetchPool
from scancar.models.data_models import Attribute, DetailRecord, DetailSection, Listing
from scancar.models.errors import SourceFetchError
from scancar.processor.brand import infer_brand
from scancar.processor.normalizer import build_attributes, clean_multiline, clean_text
from scancar.providers.base import Provider, add_unique, utc_now_iso

_CAR_ID_RE = re.compile(r"id,(\d+)", re.IGNORECASE)
_PRICE_PREFIX_RE = re.compile(r"^Giá:\s*", re.IGNORECASE)
_ADDRESS_PREFIX_RE = re.compile(r"^Địa chỉ:\s*", re.IGNORECASE)
_DESCRIPTION_TITLE_RE = re.compile(r"mô tả|chi tiết", re.IGNORECASE)

SUMMARY_LIMIT = 8
BOX_CLASSES = ("tab_left_box", "tab_right_box", "tab_bottom_box")


@dataclass(frozen=True)
class Salon:
    id: str
    name: str
    address: str
    description: str
    url: str


def _text(node) -> str:
    return clean_text(node.get_text()) if node is not None else ""


class BonbanhProvider(Provider):
    id = "bonbanh"
    name = "Bonbanh (Đắk Lắk)"
    base_url = "https://bonbanh.com/"
    allowed_hosts = frozenset({"bonbanh.com", "www.bonbanh.com", "*.bonbanh.com"})
    supports_detail = True

    salon_list_path = "salon-oto-xe-cu-dak-lak"

    async def fetch_listings(self) -> List[Listing]:
        html = await self.get_text(self.url(self.salon_list_path))
        salons = self.parse_salons(BeautifulSoup(html, "html.parser"))
        if not salons:
            raise SourceFetchError("No Bonbanh salons found in Đắk Lắk", source=self.id)

        async with BoundedFetchPool(
            self.get_text, workers=self.pool_workers, timeout=self.pool_timeout, logger=self.logger
        ) as pool:
            pages = await pool.fetch_many(salon.url for salon in salons)

        results: List[Listing] = []
        seen = set()
        for salon in salons:
            page = pages.get(salon.url)
            if isinstance(page, BaseException):
                self.warn("salon_fetch_failed", salon=salon.name or salon.url, error=str(page) or type(page).__name__)
                continue
            add_unique(results, seen, self.parse_salon_cars(BeautifulSoup(page, "html.parser"), salon))
        return results

    def parse_salons(self, soup: BeautifulSoup) -> List[Salon]:
        salons = []
        for index, anchor in enumerate(soup.select(".salon_item a")):
            href = anchor.get("href")
            if not href:
                continue
            url = self.url(href)
            host = urlsplit(url).hostname
            slug = host.replace(".", "-") if host else f"salon-{index}"
            salons.append(Salon(
                id=f"{self.id}-salon-{slug}",
                name=_text(anchor.select_one(".sl_title")) or clean_text(anchor.get("title")),
                address=_text(anchor.select_one(".s_i2")),
                description=_text(anchor.select_one(".s_spec")),
                url=url,
            ))
        return salons

    def parse_salon_cars(self, soup: BeautifulSoup, salon: Salon) -> List[Listing]:
        listings = []
        for index, item in enumerate(soup.select("#main_products li")):
            title = _text(item.select_one(".item_title b"))
            anchor = item.select_one(".item_title a")
            link = anchor.get("href") if anchor else None
            if not title or not link:
                continue

            url = self.url(link)
            image = item.select_one(".item_img img")
            tooltip = item.select_one(".div_tip")
            match = _CAR_ID_RE.search(url)
            car_id = match.group(1) if match else f"{salon.id}-{index}"
            brand = infer_brand([title, url, salon.name])

            listings.append(Listing(
                id=f"{self.id}-{car_id}",
                source=self.id,
                source_name=f"{self.name} - {salon.name}" if salon.name else self.name,
                title=title,
                price_text=_PRICE_PREFIX_RE.sub("", _text(item.select_one(".item_price b"))),
                thumbnail=self.url(image.get("src") if image else ""),
                url=url,
                attributes=build_attributes([
                    ("Salon", salon.name),
                    ("Địa chỉ", salon.address),
                    ("Tổng quan", _text(item.select_one(".item_description"))),
                ]) + self._tooltip(tooltip),
                brand=brand.brand,
                brand_slug=brand.slug,
            ))
        return listings

    @staticmethod
    def _tooltip(node) -> Tuple[Attribute, ...]:
        text = clean_multiline(node.get_text()) if node is not None else ""
        return (Attribute(label="Thông tin thêm", value=text),) if text else ()

    async def fetch_detail(self, url: str) -> DetailRecord:
        soup = BeautifulSoup(await self.get_text(url, redirect_guard=self.allows_host), "html.parser")
        return self.parse_detail(soup, url)

    def parse_detail(self, soup: BeautifulSoup, url: str) -> DetailRecord:
        sections: List[DetailSection] = []
        summary: List[Attribute] = []
        description = ""

        for index, pane in enumerate(soup.select("#detail_tabber .tab-pane")):
            pane_sections = self._tab_sections(pane)
            for section in pane_sections:
                if not description and section.items and _DESCRIPTION_TITLE_RE.search(section.title):
                    description = section.items[0].value
                sections.append(section)
            if index == 0:
                for section in pane_sections:
                    summary.extend(section.items)

        fallback = soup.select_one("#item_description, .item_description")
        fallback_text = clean_multiline(fallback.get_text()) if fallback is not None else ""
        if not summary and fallback_text:
            summary = [Attribute(label="Mô tả", value=fallback_text)]

        address = soup.select_one("#item_address")
        contact: Dict[str, str] = {
            "dealer": _text(soup.select_one("#item_head")),
            "hotline": _text(soup.select_one("#item_phone span")),
            "address": _ADDRESS_PREFIX_RE.sub("", _text(address)),
        }

        return DetailRecord(
            source=self.id,
            source_name=self.name,
            url=url,
            title=_text(soup.select_one("#detail_title p")),
            price_text=_text(soup.select_one(".price_list_car b")),
            summary=tuple(summary[:SUMMARY_LIMIT]),
            sections=tuple(sections),
            description=description or fallback_text,
            gallery=self._gallery(soup),
            contact=contact,
            scraped_at=utc_now_iso(),
        )

    def _tab_sections(self, pane) -> List[DetailSection]:
        sections = []
        for title_node in pane.select(".tab_title"):
            title = _text(title_node)
            box = title_node.find_next_sibling(True)
            classes = set(box.get("class") or ()) if box is not None else set()
            if not classes.intersection(BOX_CLASSES):
                continue

            if "tab_bottom_box" in classes:
                text = clean_multiline(box.get_text())
                if text:
                    sections.append(DetailSection(
                        title=title or "Thông tin mô tả",
                        items=(Attribute(label="Chi tiết", value=text),),
                    ))
                continue

            items = self._box_items(box)
            if items:
                sections.append(DetailSection(title=title or "Thông tin", items=items))
        return sections

    @staticmethod
    def _box_items(box) -> Tuple[Attribute, ...]:
        items = []
        for row in box.select(".tab_left_item, .tab_right_item"):
            spans = row.find_all("span")
            if not spans:
                continue
            label = _text(spans[0])
            if label.endswith(":"):
                label = label[:-1]
            value = _text(spans[-1])
            if not value:
                checkbox = spans[-1].select_one('input[type="checkbox"]')
                if checkbox is not None and checkbox.has_attr("checked"):
                    value = "Có"
            if label and value:
                items.append(Attribute(label=label, value=value))
        return tuple(items)

    def _gallery(self, soup: BeautifulSoup) -> Tuple[str, ...]:
        images: Dict[str, None] = {}
        for node in soup.select("#detail_list_img_left a, #detail_list_img_right img, #detail_list_img_right a"):
            url = self.url(node.get("href") or node.get("src"))
            if url:
                images.setdefault(url, None)
        return tuple(images)

