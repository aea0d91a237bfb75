"""Configuration."""

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Cactilia-Shipping"
    debug: bool = False

    # Packaging defaults for rules without configuracion_paquetes
    default_max_package_weight: Decimal = Decimal("5")
    default_max_items_per_package: int = 10
    default_extra_kg_cost: Decimal = Decimal("0")

    # Weight assumed for products saved without one (kg)
    fallback_product_weight: Decimal = Decimal("0.5")

    # Checkout totals
    tax_rate: Decimal = Decimal("0.16")  # IVA, prices already include it
    min_free_shipping: Decimal = Decimal("500")

    max_combination_options: int = 5

    # Rule catalog (Firestore)
    firestore_rules_collection: str = "zonas_envio"
    firebase_credentials_path: str = ""
    firebase_project_id: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
