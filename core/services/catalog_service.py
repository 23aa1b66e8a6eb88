"""
Catalog service for truck types, sizes, equipment and their prices.

The catalog is maintained from the admin screens; the pipeline only reads
it. A quote loads one snapshot and prices every selection against it.
"""

import logging

from clients.postgres_client import PostgresClient
from core.models import CatalogSnapshot, Equipment, PricingEntry, TruckSize, TruckType

logger = logging.getLogger(__name__)


class CatalogService:
    """Read-only access to the catalog and pricing tables."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    def list_truck_types(self) -> list[TruckType]:
        rows = self.postgres.execute(
            "SELECT id, name, name_he FROM truck_types ORDER BY name"
        )
        return [TruckType.model_validate(row) for row in rows]

    def list_truck_sizes(self) -> list[TruckSize]:
        rows = self.postgres.execute(
            "SELECT id, name, dimensions, truck_type_id FROM truck_sizes ORDER BY name"
        )
        return [TruckSize.model_validate(row) for row in rows]

    def list_equipment(self) -> list[Equipment]:
        rows = self.postgres.execute(
            "SELECT id, name, description FROM equipment ORDER BY name"
        )
        return [Equipment.model_validate(row) for row in rows]

    def list_active_pricing(self) -> list[PricingEntry]:
        """Active pricing entries only."""
        rows = self.postgres.execute(
            """
            SELECT item_type, item_id, cost_price, sale_price, currency, is_active
            FROM pricing
            WHERE is_active = true
            """
        )
        return [PricingEntry.model_validate(row) for row in rows]

    def load_snapshot(self) -> CatalogSnapshot:
        """
        Load the whole catalog with active prices.

        Returns:
            CatalogSnapshot for a PricingResolver
        """
        snapshot = CatalogSnapshot(
            truck_types=self.list_truck_types(),
            truck_sizes=self.list_truck_sizes(),
            equipment=self.list_equipment(),
            pricing=self.list_active_pricing(),
        )
        logger.debug(
            f"Loaded catalog: {len(snapshot.truck_types)} types, {len(snapshot.truck_sizes)} sizes, "
            f"{len(snapshot.equipment)} equipment, {len(snapshot.pricing)} prices"
        )
        return snapshot
