import asyncio
from typing import Dict, List, Optional

import pytest

from grocery_pricing.models import DealItem, PriceQuote, Vendor

# Configuration pour permettre les tests asynchrones
pytest_plugins = ["pytest_asyncio"]


def pytest_collection_modifyitems(items):
    """Add the asyncio marker to coroutine tests that forgot it."""
    for item in items:
        if item.get_closest_marker("asyncio") is None:
            if asyncio.iscoroutinefunction(getattr(item, "function", None)):
                item.add_marker(pytest.mark.asyncio)


GOV_CSV_HEADER = (
    '"Période de référence";"GÉO";"DGUID";"Produits";"Unité de mesure";'
    '"IDENTIFICATEUR";"SCALAIRE";"VECTEUR";"COORDONNÉES";"STATUT";"VALEUR"'
)


def gov_row(period: str, geo: str, product: str, value: str) -> str:
    return f'"{period}";"{geo}";"2016A000224";"{product}";"Dollars";"81";"unités";"v1";"1.1";"";"{value}"'


@pytest.fixture
def gov_csv_text() -> str:
    rows = [
        GOV_CSV_HEADER,
        gov_row("2024-01", "Québec", "Bœuf haché, par kilogramme", "12.50"),
        gov_row("2024-02", "Québec", "Bœuf haché, par kilogramme", "13.10"),
        gov_row("2024-02", "Ontario", "Bœuf haché, par kilogramme", "11.00"),
        gov_row("2024-02", "Québec", "Beurre, 454 grammes", "6.81"),
        gov_row("2024-02", "Québec", "Oeufs, 1 douzaine", "4.20"),
        gov_row("2024-02", "Québec", "Pommes, par kilogramme", "5,45"),
        gov_row("2024-02", "Québec", "Papier hygiénique, 4 rouleaux", "6.99"),
        gov_row("2024-02", "Québec", "Tomates, par kilogramme", ".."),
        '"2024-02";"Québec";"trop court"',
    ]
    return "\n".join(rows) + "\n"


@pytest.fixture
def gov_csv_file(tmp_path, gov_csv_text):
    path = tmp_path / "aliment_qc_prix.csv"
    path.write_text(gov_csv_text, encoding="utf-8")
    return path


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class FakeDealFeed:
    """In-memory deal feed recording which vendors were queried."""

    def __init__(
        self,
        vendors: List[Vendor],
        items: Dict[str, List[DealItem]],
        delay: float = 0.0,
        fail_vendors: Optional[Exception] = None,
    ):
        self.vendors = vendors
        self.items = items
        self.delay = delay
        self.fail_vendors = fail_vendors
        self.item_calls: List[str] = []

    async def list_vendors_near(self, postal_code: str) -> List[Vendor]:
        if self.fail_vendors is not None:
            raise self.fail_vendors
        return list(self.vendors)

    async def list_items(self, vendor_id: str) -> List[DealItem]:
        self.item_calls.append(vendor_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.items.get(vendor_id, []))


@pytest.fixture
def milk_feed() -> FakeDealFeed:
    vendors = [
        Vendor(id="1", merchant="Maxi"),
        Vendor(id="2", merchant="Marché Lian Tai"),
        Vendor(id="3", merchant="Metro"),
        Vendor(id="4", merchant="Canadian Tire", category="Hardware"),
    ]
    items = {
        "1": [
            DealItem(name="Lait 2% 4 L", current_price=5.00, regular_price=6.00),
            DealItem(name="Boisson d'amande", current_price=3.00),
        ],
        "2": [DealItem(name="Lait", current_price=1.00)],
        "3": [DealItem(name="Lait 1%", current_price=5.50)],
        "4": [DealItem(name="Lait de lave-glace", current_price=4.00)],
    }
    return FakeDealFeed(vendors, items)


class BrokenCache:
    async def get(self, name: str, source: Optional[str] = None) -> Optional[PriceQuote]:
        raise RuntimeError("database is down")

    async def upsert(self, name: str, quote: PriceQuote) -> None:
        raise RuntimeError("database is down")
