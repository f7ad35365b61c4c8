"""Declarative home-feed block table.

Each block type maps to display metadata plus exactly one fetch strategy.
The per-zone orderings are an editorial policy: a village user sees garden
help and machinery before shops, a city-centre user the reverse.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class StaticFetch:
    """Fixed items shipped with the service (promo banners)."""

    items: Tuple[Dict[str, Any], ...] = ()


@dataclass(frozen=True)
class BannerCardFetch:
    """Navigation card without items."""


@dataclass(frozen=True)
class AdFetch:
    """Progressive-radius ad search.

    `base_filter` always applies. `category_filter` and `search_terms` are
    ANDed, or ORed when `match_any` is set. `exclude_terms` rejects ads whose
    title or description mentions any term.
    """

    base_filter: Optional[Dict[str, Any]] = None
    category_filter: Optional[Dict[str, Any]] = None
    search_terms: Tuple[str, ...] = ()
    exclude_terms: Tuple[str, ...] = ()
    match_any: bool = False
    sort: Optional[Dict[str, int]] = None


@dataclass(frozen=True)
class ProfileRoleFetch:
    """Seller profiles with a given role near the user."""

    role: str


@dataclass(frozen=True)
class DemandFetch:
    """Most searched queries logged near the user."""

    limit: int = 6


@dataclass(frozen=True)
class LocalDemandFetch:
    """Demand chips from geohash-bucketed search stats, widening until enough."""

    exclude_categories: Tuple[str, ...] = ()
    exclude_terms: Tuple[str, ...] = ()
    limit: int = 8


@dataclass(frozen=True)
class FairsFetch:
    """Currently running seasonal fairs."""

    limit: int = 4


FetchStrategy = Union[
    StaticFetch, BannerCardFetch, AdFetch, ProfileRoleFetch, DemandFetch, LocalDemandFetch, FairsFetch
]


@dataclass(frozen=True)
class BlockConfig:
    title: str
    fetch: FetchStrategy
    display: str = "horizontal_list"
    subtitle: Optional[str] = None
    icon: Optional[str] = None
    accent_color: Optional[str] = None
    link: Optional[str] = None
    gradient: Optional[Tuple[str, ...]] = None
    instruction: Optional[str] = None
    filters: Tuple[Dict[str, Any], ...] = ()
    seasonal_months: Optional[frozenset] = field(default=None)

    def is_in_season(self, month: int) -> bool:
        return self.seasonal_months is None or month in self.seasonal_months


ZONE_BLOCK_PRIORITY: Dict[str, Tuple[str, ...]] = {
    "village": (
        "banners",
        "darom",
        "local_demand_banner",
        "local_demand",
        "second_hand",
        "garden_help",
        "machinery",
        "tractor_services",
        "farmer",
        "village_offers",
        "demand",
        "handmade",
        "seasonal_fairs",
    ),
    "suburb": (
        "banners",
        "darom",
        "local_demand_banner",
        "local_demand",
        "second_hand",
        "farmer",
        "garden_help",
        "lawn_mowing",
        "cleaning_house",
        "repair_house",
        "snow_cleaning",
        "local_shops",
        "author_brands",
        "demand",
        "trending",
        "seasonal_fairs",
    ),
    "city_center": (
        "banners",
        "darom",
        "local_demand_banner",
        "local_demand",
        "second_hand",
        "farmer",
        "tech_repair",
        "beauty",
        "cleaning",
        "home_services",
        "local_shops",
        "author_brands",
        "trending",
        "demand",
        "handmade",
        "seasonal_fairs",
    ),
}

PROMO_BANNERS: Tuple[Dict[str, Any], ...] = (
    {
        "id": "seasonal_fair",
        "title": "Сезонная ярмарка",
        "subtitle": "Лучшие предложения недели",
        "gradient": ["#6366f1", "#4f46e5"],
        "link": "/feed?season=spring",
        "icon": "tulip",
    },
    {
        "id": "local_demand",
        "title": "Ищут в районе",
        "subtitle": "Что хотят купить люди рядом",
        "gradient": ["#0ea5e9", "#0284c7"],
        "link": "/job-seekers",
        "icon": "search",
    },
    {
        "id": "farmers_nearby",
        "title": "Фермерские товары",
        "subtitle": "Свежее с фермы рядом",
        "gradient": ["#10b981", "#059669"],
        "link": "/category/farmer-market",
        "icon": "farm",
    },
    {
        "id": "free_giveaway",
        "title": "Отдам даром",
        "subtitle": "Бесплатные вещи в вашем районе",
        "gradient": ["#f472b6", "#ec4899"],
        "link": "/category/darom",
        "icon": "gift",
    },
    {
        "id": "discounts",
        "title": "Скидки до -50%",
        "subtitle": "Товары со скидкой рядом",
        "gradient": ["#f59e0b", "#d97706"],
        "link": "/feed?discount=true",
        "icon": "percent",
    },
)

SERVICE_CATEGORY_SLUGS = ("uslugi", "remont", "master", "electrician", "plumber", "services")

FARM_PRODUCE_TERMS = (
    "малина", "клубника", "черника", "смородина", "крыжовник", "ежевика", "голубика",
    "яблоки", "груши", "вишня", "черешня", "слива", "абрикос", "персик", "виноград",
    "арбуз", "дыня", "картофель", "картошка", "морковь", "свекла", "капуста", "помидоры",
    "томаты", "огурцы", "перец", "баклажаны", "кабачки", "тыква", "лук", "чеснок", "укроп",
    "петрушка", "салат", "редис", "редька", "мёд", "мед", "молоко", "сметана", "творог",
    "сыр", "масло", "яйца", "мясо", "курица", "свинина", "говядина", "баранина", "кролик",
    "утка", "гусь", "индейка", "сало", "грибы", "орехи", "варенье", "соленья", "консервы",
    "компот", "сок",
)

SECOND_HAND_EXCLUDED_CATEGORIES = (
    "uslugi", "remont", "master", "electrician", "plumber", "cleaning", "klining", "uborka",
    "gruzoperevozki", "perevozki", "vyvoz", "santehnik", "elektrik", "services", "farmer",
    "farmer-market", "farmer-vegetables", "farmer-fruits", "farmer-berries", "farmer-dairy",
    "farmer-meat", "farmer-honey", "food", "eda", "produkty",
)

SECOND_HAND_EXCLUDED_TERMS = (
    "электрик", "сантехник", "уборка", "клининг", "вывоз", "грузоперевозки", "перевозки",
    "ремонт квартир", "услуги", "мастер на час", "покос", "вспашка", "уход за садом",
    "под ключ", "монтаж", "установка", "демонтаж",
    "мытье окон", "мытьё окон", "мойка окон", "мойка", "химчистка", "стирка", "глажка",
    "уборка квартир", "уборка офисов", "генеральная уборка", "уборка после ремонта",
    "чистка", "чистка ковров", "чистка мебели", "дезинфекция", "дезинсекция",
    "ремонт", "ремонт техники", "ремонт телефонов", "ремонт компьютеров", "ремонт бытовой техники",
    "сборка мебели", "разборка мебели", "сборка", "разборка",
    "грузчики", "переезд", "доставка", "курьер", "такси грузовое",
    "няня", "сиделка", "репетитор", "массаж", "маникюр", "педикюр", "стрижка", "парикмахер",
    "малина", "клубника", "черника", "смородина", "яблоки", "груши", "вишня", "слива",
    "абрикос", "персик", "виноград", "арбуз", "дыня", "картофель", "картошка", "морковь",
    "свекла", "капуста", "помидоры", "томаты", "огурцы", "перец", "баклажаны", "кабачки",
    "тыква", "лук", "чеснок", "укроп", "петрушка", "салат", "редис", "мёд", "мед", "молоко",
    "сметана", "творог", "яйца", "мясо", "курица", "свинина", "говядина", "сало", "колбаса",
    "грибы", "орехи", "варенье", "соленья", "консервы",
)

SECOND_HAND_FILTERS = (
    {"id": "all", "label": "Все", "icon": "grid"},
    {
        "id": "electronics",
        "label": "Техника",
        "icon": "smartphone",
        "keywords": ["телефон", "ноутбук", "планшет", "компьютер", "телевизор", "наушники", "колонка", "iphone", "samsung", "xiaomi"],
    },
    {
        "id": "furniture",
        "label": "Мебель",
        "icon": "sofa",
        "keywords": ["диван", "кровать", "шкаф", "стол", "стул", "комод", "кресло", "тумба", "полка"],
    },
    {
        "id": "clothing",
        "label": "Одежда",
        "icon": "shirt",
        "keywords": ["куртка", "платье", "джинсы", "пальто", "обувь", "кроссовки", "сапоги", "свитер", "футболка"],
    },
    {
        "id": "kids",
        "label": "Детям",
        "icon": "baby",
        "keywords": ["коляска", "детская", "игрушки", "кроватка", "манеж", "автокресло", "велосипед детский", "самокат"],
    },
    {
        "id": "sports",
        "label": "Спорт",
        "icon": "dumbbell",
        "keywords": ["велосипед", "тренажер", "гантели", "лыжи", "коньки", "ролики", "самокат", "скейт", "палатка"],
    },
    {
        "id": "home",
        "label": "Для дома",
        "icon": "home",
        "keywords": ["посуда", "микроволновка", "пылесос", "стиральная", "холодильник", "плита", "утюг", "чайник"],
    },
    {
        "id": "auto",
        "label": "Авто",
        "icon": "car",
        "keywords": ["шины", "диски", "запчасти", "аккумулятор", "масло", "автозапчасти", "колеса"],
    },
)


def _in_categories(*slugs: str) -> Dict[str, Any]:
    return {"category": {"$in": list(slugs)}}


BLOCK_CONFIGS: Dict[str, BlockConfig] = {
    "banners": BlockConfig(title="Акции", display="banners", fetch=StaticFetch(PROMO_BANNERS)),
    "darom": BlockConfig(
        title="Отдам даром",
        subtitle="Бесплатные вещи рядом",
        icon="gift",
        accent_color="#ec4899",
        link="/category/darom",
        fetch=AdFetch(category_filter={"isFreeGiveaway": True}),
    ),
    "farmer": BlockConfig(
        title="Свежее с огорода",
        subtitle="Овощи, фрукты, ягоды",
        icon="carrot",
        accent_color="#059669",
        link="/category/farmer-market",
        fetch=AdFetch(
            base_filter={"isFreeGiveaway": {"$ne": True}},
            category_filter={"$or": [{"isFarmerAd": True}, {"isFoodProduct": True}]},
            search_terms=FARM_PRODUCE_TERMS,
            match_any=True,
        ),
    ),
    "local_demand": BlockConfig(
        title="Что ищут рядом",
        subtitle="Проверьте, что востребовано в вашем районе",
        icon="search",
        accent_color="#8B5CF6",
        display="demand_chips",
        instruction="Нажмите на товар, чтобы разместить объявление",
        fetch=LocalDemandFetch(
            exclude_categories=SERVICE_CATEGORY_SLUGS,
            exclude_terms=("ремонт", "услуги", "мастер", "электрик", "сантехник", "уборка", "клининг", "вывоз", "грузоперевозки"),
        ),
    ),
    "local_demand_banner": BlockConfig(
        title="В вашем районе ищут",
        subtitle="Узнайте, что востребовано рядом с вами",
        icon="search",
        accent_color="#6366f1",
        display="banner_card",
        link="/local-demand",
        gradient=("#6366f1", "#4f46e5"),
        fetch=BannerCardFetch(),
    ),
    "second_hand": BlockConfig(
        title="Из рук в руки",
        subtitle="Б/У товары от соседей",
        icon="hand",
        accent_color="#f59e0b",
        link="/feed?type=second_hand",
        filters=SECOND_HAND_FILTERS,
        fetch=AdFetch(
            category_filter={
                "isFreeGiveaway": {"$ne": True},
                "isFarmerAd": {"$ne": True},
                "isService": {"$ne": True},
                "isFoodProduct": {"$ne": True},
                "price": {"$gt": 0},
                "category": {"$nin": list(SECOND_HAND_EXCLUDED_CATEGORIES)},
            },
            exclude_terms=SECOND_HAND_EXCLUDED_TERMS,
            sort={"createdAt": -1},
        ),
    ),
    "garden_help": BlockConfig(
        title="Помощь в огороде",
        subtitle="Копка, вспашка, посадка",
        icon="shovel",
        accent_color="#84cc16",
        link="/category/ogorod",
        fetch=AdFetch(search_terms=("огород", "вспашка", "копка", "посадка", "грядки")),
    ),
    "lawn_mowing": BlockConfig(
        title="Покос травы",
        subtitle="Уход за газоном",
        icon="grass",
        accent_color="#22c55e",
        link="/search?q=покос",
        fetch=AdFetch(search_terms=("покос", "газон", "трава", "триммер")),
    ),
    "tractor_services": BlockConfig(
        title="Вспашка и культивация",
        subtitle="Тракторные услуги",
        icon="tractor",
        accent_color="#78716c",
        link="/search?q=вспашка",
        fetch=AdFetch(search_terms=("вспашка", "культивация", "трактор", "мотоблок", "пахать")),
    ),
    "cleaning": BlockConfig(
        title="Клининг квартир",
        subtitle="Профессиональная уборка",
        icon="sparkles",
        accent_color="#06b6d4",
        link="/category/cleaning",
        fetch=AdFetch(
            category_filter=_in_categories("cleaning", "klining", "uborka"),
            search_terms=("уборка квартиры", "клининг", "генеральная уборка"),
        ),
    ),
    "cleaning_house": BlockConfig(
        title="Уборка дома",
        subtitle="Клининг коттеджей и дач",
        icon="home",
        accent_color="#0ea5e9",
        link="/search?q=уборка+дома",
        fetch=AdFetch(search_terms=("уборка дома", "уборка коттеджа", "уборка дачи", "генеральная уборка")),
    ),
    "repair_house": BlockConfig(
        title="Мастера рядом",
        subtitle="Ремонт и отделка",
        icon="hammer",
        accent_color="#f97316",
        link="/category/remont",
        fetch=AdFetch(
            category_filter=_in_categories("remont", "master", "electrician", "plumber"),
            search_terms=("ремонт", "электрик", "сантехник", "мастер", "отделка"),
        ),
    ),
    "local_shops": BlockConfig(
        title="Магазины рядом",
        subtitle="Локальные продавцы",
        icon="store",
        accent_color="#8b5cf6",
        link="/shops",
        fetch=ProfileRoleFetch(role="SHOP"),
    ),
    "author_brands": BlockConfig(
        title="Авторские бренды",
        subtitle="Уникальные товары",
        icon="palette",
        accent_color="#f472b6",
        link="/brands",
        fetch=ProfileRoleFetch(role="BLOGGER"),
    ),
    "beauty": BlockConfig(
        title="Красота",
        subtitle="Маникюр, макияж, уход",
        icon="lipstick",
        accent_color="#f43f5e",
        link="/category/beauty",
        fetch=AdFetch(category_filter=_in_categories("beauty", "manicure", "barber", "kosmetika")),
    ),
    "tech_repair": BlockConfig(
        title="Ремонт техники",
        subtitle="Телефоны, ноутбуки, ПК",
        icon="wrench",
        accent_color="#3b82f6",
        link="/search?q=ремонт+техники",
        fetch=AdFetch(
            search_terms=("ремонт телефона", "ремонт ноутбука", "ремонт компьютера", "ремонт техники", "сервис")
        ),
    ),
    "home_services": BlockConfig(
        title="Домашние услуги",
        subtitle="Сантехник, электрик, мастер",
        icon="home",
        accent_color="#10b981",
        link="/category/uslugi",
        fetch=AdFetch(
            category_filter=_in_categories("uslugi", "remont", "master", "electrician", "plumber"),
            search_terms=("сантехник", "электрик", "мастер на час", "мелкий ремонт", "муж на час"),
        ),
    ),
    "trending": BlockConfig(
        title="Популярное сейчас",
        subtitle="Тренды недели",
        icon="fire",
        accent_color="#f59e0b",
        link="/trending",
        fetch=AdFetch(sort={"views": -1, "favorites": -1}),
    ),
    "demand": BlockConfig(
        title="Ищут рядом",
        subtitle="Спрос в вашем районе",
        icon="search",
        accent_color="#3b82f6",
        link="/demand",
        fetch=DemandFetch(),
    ),
    "machinery": BlockConfig(
        title="Техника",
        subtitle="Запчасти и оборудование",
        icon="tractor",
        accent_color="#78716c",
        link="/category/selhoztekhnika",
        fetch=AdFetch(category_filter=_in_categories("selhoztekhnika", "tekhnika", "zapchasti")),
    ),
    "handmade": BlockConfig(
        title="Ручная работа",
        subtitle="Handmade товары",
        icon="heart",
        accent_color="#e879f9",
        link="/category/handmade",
        fetch=AdFetch(
            category_filter=_in_categories("handmade", "ruchnaya-rabota"),
            search_terms=("handmade", "ручная работа", "авторская"),
        ),
    ),
    "seasonal_fairs": BlockConfig(
        title="Сезонные ярмарки",
        subtitle="Актуальные события",
        icon="calendar",
        accent_color="#14b8a6",
        fetch=FairsFetch(),
    ),
    "snow_cleaning": BlockConfig(
        title="Уборка снега",
        subtitle="Чистка территории",
        icon="snowflake",
        accent_color="#38bdf8",
        link="/search?q=уборка+снега",
        fetch=AdFetch(search_terms=("снег", "уборка снега", "чистка снега", "снегоуборка")),
        seasonal_months=frozenset({11, 12, 1, 2, 3}),
    ),
    "village_offers": BlockConfig(
        title="Деревенские товары",
        subtitle="Местное производство",
        icon="home",
        accent_color="#a78bfa",
        fetch=AdFetch(search_terms=("домашнее", "деревенское", "свежее", "натуральное")),
    ),
}

ZONE_UI_CONFIGS: Dict[str, Dict[str, Any]] = {
    "village": {
        "buttonSize": "large",
        "cardStyle": "simple",
        "animations": False,
        "colorAccent": "#059669",
        "categoryGridCols": 3,
    },
    "suburb": {
        "buttonSize": "medium",
        "cardStyle": "standard",
        "animations": True,
        "colorAccent": "#6366f1",
        "categoryGridCols": 4,
    },
    "city_center": {
        "buttonSize": "small",
        "cardStyle": "fancy",
        "animations": True,
        "colorAccent": "#ec4899",
        "categoryGridCols": 4,
    },
}

ZONE_DESCRIPTORS: Tuple[Dict[str, str], ...] = (
    {"id": "village", "name": "Деревня", "description": "Сельская местность, агрогородки", "icon": "home"},
    {"id": "suburb", "name": "Окраина", "description": "Частный сектор, пригород", "icon": "trees"},
    {"id": "city_center", "name": "Центр города", "description": "Многоэтажки, высокая плотность", "icon": "building"},
)
