"""Asset catalog: the shared asset definition database.

Loads asset definitions from config and provides lookup and filtering.
Read-only after initialization; every AI component receives the same
instance.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from factionai.models.asset import AssetCategory, AssetDefinition

if TYPE_CHECKING:
    from factionai.models.faction import Faction, FactionAsset


class AssetCatalog:
    """Asset definition database, read-only after initialization.

    Attributes:
        definitions: All asset definitions keyed by ID.
    """

    def __init__(self, definitions: Optional[list[AssetDefinition]] = None) -> None:
        self.definitions: dict[str, AssetDefinition] = {}
        if definitions:
            self.load(definitions)

    def load(self, definitions: list[AssetDefinition]) -> None:
        """Load asset definitions into the catalog."""
        self.definitions = {d.id: d for d in definitions}

    def get(self, definition_id: str) -> Optional[AssetDefinition]:
        """Look up a definition by ID."""
        return self.definitions.get(definition_id)

    def definition_of(self, asset: FactionAsset) -> Optional[AssetDefinition]:
        """Definition of an owned asset instance."""
        return self.definitions.get(asset.definition_id)

    def by_category(self, category: AssetCategory) -> list[AssetDefinition]:
        """Return all definitions of a category."""
        return [d for d in self.definitions.values() if d.category is category]

    def purchasable(self, faction: Faction, tech_level: int) -> list[AssetDefinition]:
        """Definitions *faction* is rated for and a world of *tech_level* supports.

        Bases of Influence are founded by expanding, never bought.
        """
        return [
            d for d in self.definitions.values()
            if not d.is_base_of_influence
            and faction.attributes.rating(d.category) >= d.required_rating
            and tech_level >= d.tech_level
        ]

    def __len__(self) -> int:
        return len(self.definitions)
