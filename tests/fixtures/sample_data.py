"""Deterministic listings and captured upstream markup for tests."""

from typing import List, Optional

from scancar.models.data_models import Attribute, DetailRecord, Listing

VIETNAMESE_TITLES = [
    "Toyota Vios 1.5G 2020",
    "Ford Ranger Wildtrak 2021",
    "Đại lý Kia Morning 2015",
    "Hyundai Accent 1.4AT 2022",
    "Mazda CX5 2.0 Premium",
    "Mitsubishi Xpander 2023",
]


def make_listing(source: str, index: int, title: Optional[str] = None) -> Listing:
    return Listing(
        id=f"{source}-{index}",
        source=source,
        source_name=source.title(),
        title=title or VIETNAMESE_TITLES[index % len(VIETNAMESE_TITLES)],
        price_text=f"{400 + index * 10} triệu",
        url=f"https://{source}.example/xe/{index}",
        attributes=(Attribute(label="Năm sản xuất", value=str(2015 + index % 8)),),
    )


def make_listings(source: str, count: int) -> List[Listing]:
    return [make_listing(source, i) for i in range(count)]


def make_detail(source: str = "bonbanh", url: str = "https://bonbanh.com/xe-1") -> DetailRecord:
    return DetailRecord(
        source=source,
        source_name="Bonbanh (Đắk Lắk)",
        url=url,
        title="Toyota Vios 1.5G 2020",
        price_text="455 Triệu",
        summary=(Attribute("Năm sản xuất", "2020"),),
        gallery=("https://bonbanh.com/img/1.jpg",),
        contact={"dealer": "Auto Thành Đạt"},
        scraped_at="2024-06-01T00:00:00.000Z",
    )


# Xe Lướt Toàn Trung

XELUOT_PAGE_1 = """
<html><body>
<div class="wap_item">
  <div class="item">
    <div class="img_sp"><img data-lazy="/upload/camry.jpg" src="/blank.gif"></div>
    <h3 class="name_sp"><a href="toyota-camry-2-5q-2022">Toyota  Camry 2.5Q
      2022</a></h3>
    <div class="gia_sp"><b>1 tỷ 150 triệu</b></div>
    <div class="mota"><ul>
      <li><img alt="Năm sản xuất" src="/i/y.png"> 2022</li>
      <li><img alt="ODO" src="/i/o.png"> 25.000 km</li>
      <li><img src="/i/x.png"></li>
    </ul></div>
    <p class="id_ss" data-id="101"></p>
  </div>
  <div class="item">
    <h3 class="name_sp"><a href="mazda-cx5-2021">Mazda CX5 2021</a></h3>
    <div class="gia_sp"><b>720 triệu</b></div>
    <p class="id_ss" data-id="102"></p>
  </div>
  <div class="item"><h3 class="name_sp"><a href="khong-ten">  </a></h3></div>
</div>
<ul class="pagination-home">
  <li><a class="page-link" href="san-pham?p=1">1</a></li>
  <li><a class="page-link" href="san-pham?p=2">2</a></li>
  <li><a class="page-link" href="san-pham?p=2">&raquo;</a></li>
</ul>
</body></html>
"""

XELUOT_PAGE_2 = """
<div class="wap_item">
  <div class="item">
    <h3 class="name_sp"><a href="mazda-cx5-2021">Mazda CX5 2021</a></h3>
    <p class="id_ss" data-id="102"></p>
  </div>
  <div class="item">
    <h3 class="name_sp"><a href="hyundai-santafe-2020">Hyundai SantaFe 2020</a></h3>
    <div class="gia_sp"><b>890 triệu</b></div>
    <p class="id_ss" data-id="103"></p>
  </div>
</div>
"""


# Anh Lượng Auto

OTOANHLUONG_HOME = """
<div id="al-car-all"><span>Tất cả (3)</span></div>
<ul class="al-list-cars">
  <li class="al-item">
    <div class="car-home"><img class="al-img-car" src="/images/ranger.jpg"></div>
    <div class="car-home-tieu-de">
      <a class="al-car" href="https://otoanhluong.vn/Xe-ford-ranger-wildtrak-2021">Ford Ranger Wildtrak 2021</a>
    </div>
    <div class="al-box-price">
      <span class="al-price">685 Triệu</span>
      <span class="tra-truoc-al">Trả trước 200 Triệu</span>
    </div>
    <ul class="al-info-car">
      <li><i class="fas fa-calendar-alt"></i> 2021</li>
      <li><i class="fas fa-gas-pump"></i> Dầu</li>
      <li><i class="fas fa-star"></i> Mới</li>
    </ul>
  </li>
  <li class="al-item">
    <div class="car-home-tieu-de"><a class="al-car">Không có link</a></div>
  </li>
</ul>
"""

OTOANHLUONG_LOAD_MORE = {
    "errorCode": 0,
    "listCars": [
        {
            "title": "Kia Seltos 1.4 Premium",
            "url": "kia-seltos-2022",
            "botvn_car_id": 555,
            "price": "599 Triệu",
            "car_year": 2022,
            "mileage": "18.000 km",
            "_image": "/img/seltos.jpg",
            "_make_name": "Kia",
        },
        {"title_car": "Honda City RS", "botvn_car_id": 556, "url": "honda-city-rs"},
        {"title": ""},
    ],
    "btn_status": 1,
    "page": 2,
}


# Bonbanh

BONBANH_SALON_LIST = """
<div class="salon_item">
  <a href="https://autothanhdat.bonbanh.com/" title="Auto Thành Đạt">
    <div class="sl_title">Auto Thành Đạt</div>
    <div class="s_i2">12 Lê Duẩn, Buôn Ma Thuột</div>
    <div class="s_spec">Chuyên xe lướt</div>
  </a>
</div>
<div class="salon_item">
  <a href="https://salonbmt.bonbanh.com/"><div class="sl_title">Salon BMT</div></a>
</div>
"""

BONBANH_SALON_PAGE = """
<ul id="main_products">
  <li>
    <div class="item_img"><img src="https://s.bonbanh.com/uploads/1.jpg"></div>
    <div class="item_title"><a href="https://bonbanh.com/xe-toyota-vios-1.5g-2020-id,5012345"><b>Toyota Vios 1.5G 2020</b></a></div>
    <div class="item_price"><b>Giá: 455 Triệu</b></div>
    <div class="item_description">Xe gia đình, một chủ</div>
    <div class="div_tip">Màu trắng
      Số tự động</div>
  </li>
  <li><div class="item_title"><a href="/xe-khong-ten"></a></div></li>
</ul>
"""

BONBANH_DETAIL = """
<div id="detail_title"><p>Toyota Vios 1.5G 2020</p></div>
<div class="price_list_car"><b>455 Triệu</b></div>
<div id="detail_tabber">
  <div class="tab-pane">
    <div class="tab_title">Thông số cơ bản</div>
    <div class="tab_left_box">
      <div class="tab_left_item"><span>Năm sản xuất:</span><span>2020</span></div>
      <div class="tab_left_item"><span>Hộp số:</span><span>Số tự động</span></div>
    </div>
    <div class="tab_title">Tiện nghi</div>
    <div class="tab_right_box">
      <div class="tab_right_item"><span>Camera lùi</span><span><input type="checkbox" checked></span></div>
      <div class="tab_right_item"><span>Cửa sổ trời</span><span><input type="checkbox"></span></div>
    </div>
  </div>
  <div class="tab-pane">
    <div class="tab_title">Mô tả chi tiết</div>
    <div class="tab_bottom_box">Xe đẹp
      Bao test hãng</div>
  </div>
</div>
<div id="detail_list_img_left"><a href="/img/big1.jpg"></a></div>
<div id="detail_list_img_right"><img src="/img/big2.jpg"><a href="/img/big1.jpg"></a></div>
<div id="item_head">Auto Thành Đạt</div>
<div id="item_phone"><span>0905 123 456</span></div>
<div id="item_address">Địa chỉ: 12 Lê Duẩn, Buôn Ma Thuột</div>
"""


# Chợ Tốt

CHOTOT_ADS = {
    "ads": [
        {
            "list_id": 111,
            "subject": "Toyota Fortuner 2.4G 2019 máy dầu",
            "price": 850_000_000,
            "category": 2010,
            "car_year": 2019,
            "mileage_v2": 60000,
            "gearbox": 2,
            "fuel": 2,
            "number_of_seat": 7,
            "origin": 1,
            "area_name": "Buôn Ma Thuột",
            "region_name": "Đắk Lắk",
            "image": "https://cdn.chotot.com/1.jpg",
        },
        {"list_id": 112, "subject": "Honda Vision 2022", "price": 30_000_000, "category": 2010},
        {"list_id": 113, "subject": "Kia Morning 2015", "price": 0, "category": 2010},
        {"subject": "Không có id", "price": 500_000_000},
    ]
}

CHOTOT_DETAIL = {
    "ad": {
        "list_id": 111,
        "subject": "Toyota Fortuner 2.4G 2019 máy dầu",
        "price": 850_000_000,
        "body": "Xe gia đình, bảo dưỡng hãng",
        "images": ["https://cdn.chotot.com/1.jpg", {"url": "https://cdn.chotot.com/2.jpg"}],
        "account_name": "Anh Tuấn",
        "phone": "0905 111 222",
        "brand_name": "Toyota",
        "model_name": "Fortuner",
        "car_year": 2019,
        "gearbox": 2,
        "drivetrain": 3,
        "area_name": "Buôn Ma Thuột",
        "region_name": "Đắk Lắk",
    }
}


# VnExpress V-Car

VCAR_ROWS = """
<tr class="banggiaxe-item" data-life-id="901">
  <td class="td-name"><a href="/oto-xe-may/v-car/hang-xe/toyota">Toyota</a></td>
  <td><a href="/oto-xe-may/v-car/dong-xe/vios">Vios</a></td>
  <td>1.5E MT</td><td>Sedan hạng B</td><td>1.5L</td><td>479 triệu</td><td>Có</td>
</tr>
<tr class="banggiaxe-item">
  <td class="td-name"><a>VinFast</a></td><td>VF 5</td><td></td><td>SUV hạng A</td><td>Điện</td><td></td><td></td>
</tr>
"""

VCAR_PAGE_WITH_ROWS = f"""
<html><body>
<div class="table-car-content"><table>{VCAR_ROWS}</table></div>
</body></html>
"""

VCAR_PAGE_WITHOUT_ROWS = """
<html><body><div class="table-car-content"><table></table></div></body></html>
"""


BONBANH_DETAIL_URL = "https://bonbanh.com/xe-toyota-vios-1.5g-2020-id,5012345"
CHOTOT_DETAIL_URL = "https://xe.chotot.com/toyota-fortuner-2-4g-2019-may-dau-i111"

# Listings each healthy upstream contributes to the used-car snapshot
EXPECTED_COUNTS = {"xeluottoantrung": 3, "otoanhluong": 3, "bonbanh": 1, "chotot": 2}
