"""Test fixtures."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from cactilia.api.shipping import get_shipping_service
from cactilia.main import app
from cactilia.services.normalize import CartItem, Product, ShippingRule
from cactilia.services.rule_catalog import InMemoryRuleCatalog
from cactilia.services.shipping import ShippingService

LOCAL_RULE = {
    "id": "local-puebla",
    "zona": "Local",
    "activo": True,
    "zipcodes": ["72000", "72001", "72010-72099"],
    "precio_base": 50,
    "configuracion_paquetes": {
        "peso_maximo_paquete": 5,
        "maximo_productos_por_paquete": 10,
        "costo_por_kg_extra": 10,
    },
    "tiempo_minimo": 1,
    "tiempo_maximo": 2,
}

STATE_RULE = {
    "id": "estado-puebla",
    "zona": "Puebla",
    "activo": True,
    "zipcodes": ["estado_PUE"],
    "envio_gratis_monto_minimo": 1000,
    "opciones_mensajeria": [
        {
            "nombre": "Estafeta",
            "label": "Estándar",
            "precio": 120,
            "tiempo_entrega": "2-4 días",
            "configuracion_paquetes": {
                "peso_maximo_paquete": 10,
                "maximo_productos_por_paquete": 20,
                "costo_por_kg_extra": 15,
            },
        },
    ],
}

NATIONAL_RULE = {
    "id": "nacional",
    "zona": "Nacional",
    "activo": True,
    "zipcodes": ["nacional"],
    "precio_base": 200,
    "carrier": "DHL",
    "configuracion_paquetes": {
        "peso_maximo_paquete": 20,
        "maximo_productos_por_paquete": 30,
        "costo_por_kg_extra": 20,
    },
    "tiempo_minimo": 3,
    "tiempo_maximo": 7,
}

INACTIVE_RULE = {
    "id": "inactiva",
    "zona": "Vieja",
    "activo": False,
    "zipcodes": ["nacional"],
    "precio_base": 1,
}

PUEBLA_ADDRESS = {"zip": "72000", "state": "Puebla", "city": "Puebla"}
MONTERREY_ADDRESS = {"zipCode": "64000", "state": "Nuevo León"}


def make_item(pid, price=100, weight=1, quantity=1, rules=None, name=None) -> CartItem:
    return CartItem(
        product=Product.from_dict({
            "id": pid,
            "name": name or f"Producto {pid}",
            "price": price,
            "weight": weight,
            "shippingRuleIds": rules if rules is not None else [],
        }),
        quantity=quantity,
    )


def make_rule(**fields) -> ShippingRule:
    data = {"id": "r1", "zona": "Zona", "activo": True, "zipcodes": ["nacional"]}
    data.update(fields)
    return ShippingRule.from_dict(data)


@pytest.fixture
def rule_docs():
    return [LOCAL_RULE, STATE_RULE, NATIONAL_RULE, INACTIVE_RULE]


@pytest.fixture
def catalog(rule_docs):
    return InMemoryRuleCatalog(rule_docs)


@pytest.fixture
def service(catalog):
    return ShippingService(catalog=catalog)


@pytest.fixture
def cart_docs():
    return [
        {
            "product": {
                "id": "taza",
                "name": "Taza de talavera",
                "price": 250,
                "weight": 0.8,
                "shippingRuleIds": ["local-puebla", "nacional"],
            },
            "quantity": 2,
        },
        {
            "id": "libro",
            "name": "Libro de cactáceas",
            "price": 400,
            "weight": 1.2,
            "shippingRuleIds": ["nacional"],
            "quantity": 1,
        },
    ]


@pytest_asyncio.fixture
async def client(service) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_shipping_service] = lambda: service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
