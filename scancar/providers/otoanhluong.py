"""Anh Lượng Auto: home page listings followed by a load-more JSON endpoint."""

import re
from typing import Any, Dict, List, Optional, Set
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from scancar.models.data_models import Attribute, Listing
from scancar.processor.brand import BrandInfo, infer_brand
from scancar.processor.normalizer import build_attributes, clean_text
from scancar.providers.base import Provider, add_unique

ICON_LABELS = {
    "fa-calendar-alt": "Năm sản xuất",
    "fa-tachometer-alt": "ODO",
    "fa-gas-pump": "Nhiên liệu",
    "fa-car": "Kiểu dáng",
}

_DIGITS_RE = re.compile(r"(\d+)")


def icon_label(classes) -> str:
    key = next((token for token in classes or () if token.startswith("fa-")), None)
    return ICON_LABELS.get(key, "Thông tin")


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class OtoAnhLuongProvider(Provider):
    id = "otoanhluong"
    name = "Anh Lượng Auto"
    base_url = "https://otoanhluong.vn/"
    allowed_hosts = frozenset({"otoanhluong.vn", "www.otoanhluong.vn"})

    load_more_path = "ajax/ajaxLoadMoreCars.php"
    max_load_more = 50

    async def fetch_listings(self) -> List[Listing]:
        soup = BeautifulSoup(await self.get_text(self.base_url), "html.parser")
        results: List[Listing] = []
        seen: Set[str] = set()

        add_unique(results, seen, self.parse_home(soup))
        await self._load_more(results, seen, self.parse_total_count(soup))
        return results

    async def _load_more(self, results: List[Listing], seen: Set[str], target: Optional[int]) -> None:
        if target and len(results) >= target:
            return

        page = 1
        for _ in range(self.max_load_more):
            payload = await self.post_form_json(
                self.url(self.load_more_path),
                {"page": str(page), "make_id": "0", "sort": "", "action": "2"},
            )
            if not isinstance(payload, dict):
                break
            if payload.get("errorCode") and _as_int(payload["errorCode"]) != 0:
                break

            items = payload.get("listCars")
            items = items if isinstance(items, list) else []
            add_unique(results, seen, (self.map_api_car(item) for item in items))

            if (target and len(results) >= target) or payload.get("btn_status") == 0 or not items:
                break

            candidate = _as_int(payload.get("page"))
            if candidate is None or candidate == page:
                break
            page = candidate

    @staticmethod
    def parse_total_count(soup: BeautifulSoup) -> Optional[int]:
        node = soup.select_one("#al-car-all span")
        match = _DIGITS_RE.search(clean_text(node.get_text()) if node else "")
        return int(match.group(1)) if match else None

    def parse_home(self, soup: BeautifulSoup) -> List[Listing]:
        listings = []
        for index, node in enumerate(soup.select("ul.al-list-cars li.al-item")):
            anchor = node.select_one(".car-home-tieu-de a.al-car")
            title = clean_text(anchor.get_text()) if anchor else ""
            href = (anchor.get("href") or "") if anchor else ""
            if not title or not href:
                continue

            link = self.url(href)
            slug = urlsplit(link).path.lstrip("/") or href
            image = node.select_one(".car-home img.al-img-car")
            price = node.select_one(".al-box-price .al-price")
            upfront_node = node.select_one(".al-box-price .tra-truoc-al")
            upfront = clean_text(upfront_node.get_text()) if upfront_node else ""

            attributes = []
            if upfront:
                attributes.append(
                    Attribute(label="Trả trước", value=upfront.replace("Trả trước", "").strip() or upfront)
                )
            for field in node.select(".al-info-car li"):
                icon = field.find("i")
                value = clean_text(field.get_text(" "))
                if value:
                    attributes.append(Attribute(label=icon_label(icon.get("class") if icon else None), value=value))

            listings.append(self._listing(
                upstream_id=slug or str(index),
                title=title,
                price_text=clean_text(price.get_text()) if price else "",
                thumbnail=self.url(image.get("src") if image else ""),
                url=link,
                attributes=tuple(attributes),
                brand=infer_brand([slug, title]),
            ))
        return listings

    def map_api_car(self, item: Dict[str, Any]) -> Optional[Listing]:
        """Map one load-more record; records without a title are dropped."""
        if not isinstance(item, dict):
            return None
        title = clean_text(item.get("title") or item.get("title_car"))
        if not title:
            return None

        slug = str(item.get("url") or item.get("botvn_car_id") or title)
        attributes = build_attributes([
            ("Trả trước", item.get("prepay")),
            ("Năm sản xuất", str(item["car_year"]) if item.get("car_year") else None),
            ("ODO", str(item["mileage"]) if item.get("mileage") else None),
            ("Nhiên liệu", str(item["fueltype_id"]) if item.get("fueltype_id") else None),
            ("Kiểu dáng", str(item["body_style_id"]) if item.get("body_style_id") else None),
        ])

        return self._listing(
            upstream_id=str(item.get("botvn_car_id") or slug),
            title=title,
            price_text=clean_text(item.get("price")),
            thumbnail=self.url(item.get("_image") or item.get("image")),
            url=self.url(f"Xe-{slug}"),
            attributes=attributes,
            brand=infer_brand([item.get("_make_name"), slug, title]),
        )

    def _listing(self, upstream_id: str, brand: BrandInfo, **fields) -> Listing:
        return Listing(
            id=f"{self.id}-{upstream_id}",
            source=self.id,
            source_name=self.name,
            brand=brand.brand,
            brand_slug=brand.slug,
            **fields,
        )
