"""Chợ Tốt: public ad-listing JSON gateway, filtered to cars around Buôn Ma Thuột."""

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from scancar.models.data_models import DetailRecord, DetailSection, Listing
from scancar.models.errors import SourceFetchError
from scancar.processor.brand import infer_brand
from scancar.processor.normalizer import build_attributes, clean_text, format_number_vi, slugify
from scancar.providers.base import Provider, utc_now_iso

API_URL = "https://gateway.chotot.com/v1/public/ad-listing"

# Buôn Ma Thuột
DEFAULT_LATITUDE = 12.6796827
DEFAULT_LONGITUDE = 108.0447368
DEFAULT_DISTANCE_KM = 10

CAR_CATEGORIES = (2010, 2020, 2030)
MIN_CAR_PRICE = 50_000_000

EXCLUDED_KEYWORDS = (
    "xe máy", "xe may", "mô tô", "mo to", "môtô", "moto",
    "xe đạp", "xe dap", "scooter", "exciter", "winner", "wave",
    "sirius", "jupiter", "vision", "air blade", "airblade", "sh ",
    "lead", "vario", "pcx", "nvx", "grande", "janus", "freego",
    "vespa", "piaggio", "r15", "mt-15", "mt15", "cbr150", "cb150",
    "raider", "satria", "sonic", "future", "dream", "cub",
    "xe tải", "xe tai", "xe ben", "xe bồn", "xe bon", "xe cẩu", "xe cau",
    "xe nâng", "xe nang", "xe đầu kéo", "xe dau keo", "máy nông nghiệp",
)

GEARBOXES = {1: "Số sàn", 2: "Số tự động"}
FUELS = {1: "Xăng", 2: "Dầu", 3: "Hybrid", 4: "Điện"}
ORIGINS = {1: "Trong nước", 2: "Nhập khẩu"}
DRIVETRAINS = {1: "Cầu trước (FWD)", 2: "Cầu sau (RWD)", 3: "4 cầu (4WD/AWD)"}

_LISTING_ID_RE = re.compile(r"-i(\d+)(?:\.htm)?$")
_WHITESPACE_RE = re.compile(r"\s+")


def format_price(price: Any) -> str:
    """
    Render a VND amount the way listing sites do.

    >>> format_price(1_500_000_000)
    '1.5 tỷ'
    >>> format_price(685_000_000)
    '685 triệu'
    """
    if not isinstance(price, (int, float)) or price <= 0:
        return "Thỏa thuận"
    if price >= 1_000_000_000:
        billions = price / 1_000_000_000
        return f"{billions:.0f} tỷ" if billions % 1 == 0 else f"{billions:.1f} tỷ"
    if price >= 1_000_000:
        return f"{price / 1_000_000:.0f} triệu"
    return f"{format_number_vi(price)} đ"


def is_valid_car(ad: Mapping[str, Any]) -> bool:
    """Drop motorbikes, trucks and anything priced below a car."""
    category = ad.get("category")
    if category and category not in CAR_CATEGORIES:
        if not (ad.get("car_year") or ad.get("number_of_seat") or ad.get("gearbox")):
            return False

    title = str(ad.get("subject") or ad.get("title") or "").lower()
    if any(keyword in title for keyword in EXCLUDED_KEYWORDS):
        return False

    price = ad.get("price") or 0
    return not (0 < price < MIN_CAR_PRICE)


def _mapped(mapping: Mapping[int, str], value: Any) -> Optional[str]:
    if not value:
        return None
    return mapping.get(value, str(value))


def _mileage(ad: Mapping[str, Any]) -> Optional[str]:
    km = ad.get("mileage_v2") or ad.get("mileage")
    return f"{format_number_vi(km)} km" if km else None


def _seats(ad: Mapping[str, Any]) -> Optional[str]:
    seats = ad.get("number_of_seat")
    return f"{seats} chỗ" if seats else None


def _year(ad: Mapping[str, Any]) -> Optional[str]:
    return str(ad["car_year"]) if ad.get("car_year") else None


def _location(ad: Mapping[str, Any]) -> str:
    return ", ".join(part for part in (ad.get("area_name"), ad.get("region_name")) if part)


class ChototProvider(Provider):
    id = "chotot"
    name = "Chợ Tốt (Buôn Ma Thuột)"
    base_url = "https://xe.chotot.com/"
    allowed_hosts = frozenset({"xe.chotot.com", "chotot.com", "www.chotot.com"})
    supports_detail = True

    api_url = API_URL
    page_size = 100

    def listing_params(self) -> Dict[str, Any]:
        return {
            "cg": "2010",
            "latitude": DEFAULT_LATITUDE,
            "longitude": DEFAULT_LONGITUDE,
            "distance": DEFAULT_DISTANCE_KM,
            "limit": self.page_size,
            "o": 0,
            "st": "s,k",
            "f": "p",
            "key_param_included": "true",
        }

    def car_url(self, listing_id: Any, subject: str) -> str:
        return self.url(f"{slugify(subject)}-i{listing_id}")

    async def fetch_listings(self) -> List[Listing]:
        data = await self.get_json(self.api_url, params=self.listing_params())
        ads = data.get("ads") if isinstance(data, dict) else None
        if not isinstance(ads, list):
            self.warn("no_listings_payload")
            return []

        listings = []
        for ad in ads:
            if not isinstance(ad, dict) or not (ad.get("list_id") or ad.get("ad_id")) or not is_valid_car(ad):
                continue
            try:
                listings.append(self.parse_ad(ad))
            except (KeyError, TypeError, ValueError) as e:
                self.warn("ad_parse_failed", error=str(e))
        return listings

    def parse_ad(self, ad: Mapping[str, Any]) -> Listing:
        listing_id = ad.get("list_id") or ad.get("ad_id")
        subject = str(ad.get("subject") or ad.get("title") or "")
        brand = infer_brand([subject, ad.get("brand_name"), ad.get("model_name")])

        attributes = build_attributes([
            ("Năm sản xuất", _year(ad)),
            ("Số km đã đi", _mileage(ad)),
            ("Hộp số", _mapped(GEARBOXES, ad.get("gearbox"))),
            ("Nhiên liệu", _mapped(FUELS, ad.get("fuel"))),
            ("Số chỗ ngồi", _seats(ad)),
            ("Xuất xứ", _mapped(ORIGINS, ad.get("origin"))),
            ("Kiểu dáng", (ad.get("body_type_name") or str(ad["body_type"])) if ad.get("body_type") else None),
            ("Khu vực", _location(ad)),
        ])

        return Listing(
            id=f"{self.id}-{listing_id}",
            source=self.id,
            source_name=self.name,
            title=clean_text(subject),
            price_text=format_price(ad.get("price")),
            thumbnail=str(ad.get("image") or ad.get("thumbnail") or ""),
            url=self.car_url(listing_id, subject),
            attributes=attributes,
            brand=brand.brand or str(ad.get("brand_name") or ""),
            brand_slug=brand.slug,
        )

    async def fetch_detail(self, url: str) -> DetailRecord:
        match = _LISTING_ID_RE.search(urlsplit(url).path)
        if not match:
            raise SourceFetchError(f"No Chợ Tốt listing id in {url}", source=self.id)

        data = await self.get_json(f"{self.api_url}/{match.group(1)}")
        ad = (data.get("ad") or data) if isinstance(data, dict) else None
        if not ad:
            raise SourceFetchError("Listing details not found", source=self.id)
        return self.parse_ad_detail(ad)

    def parse_ad_detail(self, ad: Mapping[str, Any]) -> DetailRecord:
        subject = str(ad.get("subject") or ad.get("title") or "")
        gearbox = _mapped(GEARBOXES, ad.get("gearbox"))
        fuel = _mapped(FUELS, ad.get("fuel"))

        summary = build_attributes([
            ("Năm sản xuất", _year(ad)),
            ("Hãng xe", ad.get("brand_name")),
            ("Dòng xe", ad.get("model_name")),
            ("Số km đã đi", _mileage(ad)),
            ("Hộp số", gearbox),
            ("Nhiên liệu", fuel),
            ("Số chỗ ngồi", _seats(ad)),
            ("Xuất xứ", _mapped(ORIGINS, ad.get("origin"))),
        ])

        sections = []
        vehicle = build_attributes([
            ("Hãng xe", ad.get("brand_name")),
            ("Dòng xe", ad.get("model_name")),
            ("Năm sản xuất", _year(ad)),
            ("Kiểu dáng", ad.get("body_type_name")),
            ("Màu ngoại thất", ad.get("exterior_color")),
        ])
        if vehicle:
            sections.append(DetailSection(title="Thông tin xe", items=vehicle))
        specs = build_attributes([
            ("Dung tích động cơ", str(ad["engine"]) if ad.get("engine") else None),
            ("Số km đã đi", _mileage(ad)),
            ("Hộp số", gearbox),
            ("Nhiên liệu", fuel),
            ("Số chỗ ngồi", _seats(ad)),
            ("Dẫn động", _mapped(DRIVETRAINS, ad.get("drivetrain"))),
        ])
        if specs:
            sections.append(DetailSection(title="Thông số kỹ thuật", items=specs))

        return DetailRecord(
            source=self.id,
            source_name=self.name,
            url=self.car_url(ad.get("list_id") or ad.get("ad_id"), subject),
            title=clean_text(subject),
            price_text=format_price(ad.get("price")),
            summary=summary,
            sections=tuple(sections),
            description=str(ad.get("body") or ad.get("description") or ""),
            gallery=self._gallery(ad),
            contact=self._contact(ad),
            scraped_at=utc_now_iso(),
        )

    @staticmethod
    def _gallery(ad: Mapping[str, Any]) -> Tuple[str, ...]:
        images = ad.get("images")
        if isinstance(images, list):
            gallery = []
            for image in images:
                if isinstance(image, str):
                    gallery.append(image)
                elif isinstance(image, dict) and image.get("url"):
                    gallery.append(image["url"])
            return tuple(gallery)
        return (ad["image"],) if ad.get("image") else ()

    @staticmethod
    def _contact(ad: Mapping[str, Any]) -> Dict[str, str]:
        phone = str(ad.get("phone") or "")
        contact = {
            "dealer": str(ad.get("account_name") or ""),
            "phone": phone or str(ad.get("phone_hidden") or ""),
            "hotline": phone,
            "hotlineLink": f"tel:{_WHITESPACE_RE.sub('', phone)}" if phone else "",
        }
        location = _location(ad)
        if location:
            contact["address"] = location
        return contact
