"""Shipping rule catalog.

Rules live in the Firestore ``zonas_envio`` collection. The orchestrator only
needs ``get_active_shipping_rules()``; tests and the CLI use the in-memory
catalog instead.
"""

import logging
from typing import Any, Iterable, Optional

import firebase_admin
from firebase_admin import credentials, firestore_async
from google.api_core.exceptions import GoogleAPIError
from google.cloud.firestore_v1.base_query import FieldFilter

from cactilia.config import get_settings
from cactilia.services.normalize import ShippingRule

logger = logging.getLogger(__name__)


class RuleCatalogError(Exception):
    """The rule store could not be read."""


class RuleCatalog:
    async def get_active_shipping_rules(self) -> list[ShippingRule]:
        raise NotImplementedError


class InMemoryRuleCatalog(RuleCatalog):
    """Catalog over rule documents or ``ShippingRule`` objects already in memory."""

    def __init__(self, rules: Optional[Iterable[Any]] = None):
        self._rules = [ShippingRule.from_dict(r) for r in (rules or []) if r]

    async def get_active_shipping_rules(self) -> list[ShippingRule]:
        return [r for r in self._rules if r.active]

    def all_rules(self) -> list[ShippingRule]:
        return list(self._rules)


def _ensure_firebase_app() -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    settings = get_settings()
    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    try:
        if settings.firebase_credentials_path:
            cred = credentials.Certificate(settings.firebase_credentials_path)
        else:
            cred = credentials.ApplicationDefault()
        app = firebase_admin.initialize_app(cred, options)
    except (ValueError, OSError) as e:
        raise RuleCatalogError(f"Firebase could not be initialized: {e}") from e
    logger.info(f"Firebase initialized for project {app.project_id or 'default'}")
    return app


class FirestoreRuleCatalog(RuleCatalog):
    """Reads active rules from Firestore with the async client."""

    def __init__(self, collection: Optional[str] = None, client=None):
        self.collection = collection or get_settings().firestore_rules_collection
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = firestore_async.client(app=_ensure_firebase_app())
        return self._client

    async def get_active_shipping_rules(self) -> list[ShippingRule]:
        query = self.client.collection(self.collection).where(
            filter=FieldFilter("activo", "==", True)
        )
        rules = []
        try:
            async for doc in query.stream():
                data = doc.to_dict() or {}
                data["id"] = doc.id
                rules.append(ShippingRule.from_dict(data))
        except GoogleAPIError as e:
            raise RuleCatalogError(
                f"Failed to load shipping rules from {self.collection}: {e}"
            ) from e

        active = [r for r in rules if r.active]
        logger.info(f"Loaded {len(active)} active shipping rules from {self.collection}")
        return active
