"""VnExpress V-Car: new-car price table.

The table is read from the rendered page when present, otherwise from the
ajax endpoint that serves the same rows as an HTML fragment.
"""

from typing import List

from bs4 import BeautifulSoup

from scancar.models.data_models import Listing
from scancar.models.errors import SourceFetchError
from scancar.processor.brand import infer_brand
from scancar.processor.normalizer import build_attributes, clean_text, slugify
from scancar.providers.base import Provider

PAGE_HEADERS = {"Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"}
AJAX_HEADERS = {
    "Accept": "application/json, text/javascript, */*; q=0.01",
    "X-Requested-With": "XMLHttpRequest",
}

MISSING_PRICE = "Giá niêm yết: --"


class VCarProvider(Provider):
    id = "vcar"
    name = "VnExpress V-Car"
    base_url = "https://vnexpress.net/"
    allowed_hosts = frozenset({"vnexpress.net"})

    page_path = "oto-xe-may/v-car"
    table_path = "oto-xe-may/v-car/banggiaxe/-1"

    async def fetch_listings(self) -> List[Listing]:
        rows = ""
        try:
            rows = self.extract_rows(await self.get_text(self.url(self.page_path), headers=PAGE_HEADERS))
        except SourceFetchError as e:
            self.warn("price_page_failed", error=str(e))

        if not rows:
            rows = await self._fetch_table_rows()
        if not rows:
            return []
        return self.parse_rows(rows)

    async def _fetch_table_rows(self) -> str:
        data = await self.get_json(self.url(self.table_path), headers=AJAX_HEADERS)
        if not isinstance(data, dict):
            raise SourceFetchError(f"{self.name} returned an unexpected payload", source=self.id)
        error = data.get("error")
        if error and str(error) != "0":
            raise SourceFetchError(f"{self.name} returned error: {error}", source=self.id)
        return data.get("html") or ""

    @staticmethod
    def extract_rows(html: str) -> str:
        soup = BeautifulSoup(html, "html.parser")
        return "\n".join(str(row) for row in soup.select(".table-car-content .banggiaxe-item"))

    def parse_rows(self, html: str) -> List[Listing]:
        # Rows arrive as bare <tr> fragments
        soup = BeautifulSoup(f"<table>{html}</table>", "html.parser")
        listings = []
        for index, row in enumerate(soup.select(".banggiaxe-item")):
            cells = row.find_all("td")

            def cell(position: int) -> str:
                return clean_text(cells[position].get_text()) if position < len(cells) else ""

            brand_anchor = row.select_one(".td-name a")
            model_anchor = cells[1].find("a") if len(cells) > 1 else None

            brand_name = clean_text(brand_anchor.get_text()) if brand_anchor else ""
            model_name = (clean_text(model_anchor.get_text()) if model_anchor else "") or cell(1)
            version = cell(2)

            life_id = clean_text(row.get("data-life-id")) or f"{brand_name}-{model_name}-{version}"
            variant_key = slugify(version) if version else str(index)

            info = infer_brand([brand_name, model_name])
            brand = info.brand or brand_name
            brand_slug = info.slug or slugify(brand_name or model_name)
            title = " ".join(part for part in (brand, model_name, version) if part) or "V-Car"

            href = (model_anchor.get("href") if model_anchor else None) or (
                brand_anchor.get("href") if brand_anchor else None
            )

            listings.append(Listing(
                id=f"{self.id}-{life_id}-{variant_key}-{index}",
                source=self.id,
                source_name=self.name,
                title=title,
                price_text=cell(5) or MISSING_PRICE,
                url=self.url(href or f"/{self.page_path}"),
                attributes=build_attributes([
                    ("Phiên bản", version),
                    ("Phân khúc", cell(3)),
                    ("Động cơ", cell(4)),
                    ("Đàm phán", cell(6)),
                ]),
                brand=brand,
                brand_slug=brand_slug,
            ))
        return listings
