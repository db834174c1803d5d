"""Neighborhood to borough lookup loaded from a YAML data file."""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_AREAS_PATH = Path(__file__).parent.parent / "data" / "nyc_areas.yaml"


class AreaLookup:
    """
    Map fine-grained neighborhoods to the coarse label (borough) they belong to.

    The table lives in a data file so new neighborhoods can be added without
    code changes. Expected layout::

        boroughs:
          Brooklyn:
            - Williamsburg
            - Bushwick
    """

    def __init__(self, boroughs: Dict[str, Iterable[str]]):
        self._neighborhoods_by_borough: Dict[str, List[str]] = {}
        self._borough_by_neighborhood: Dict[str, str] = {}

        for borough, neighborhoods in boroughs.items():
            names = list(neighborhoods or [])
            self._neighborhoods_by_borough[borough] = names
            for name in names:
                if name in self._borough_by_neighborhood:
                    logger.warning(
                        f"Neighborhood {name!r} listed under both "
                        f"{self._borough_by_neighborhood[name]!r} and {borough!r}"
                    )
                self._borough_by_neighborhood[name] = borough

    @classmethod
    def from_file(cls, path: Optional[str] = None) -> "AreaLookup":
        """
        Load the lookup table from YAML.

        Args:
            path: Path to the data file. Defaults to the bundled NYC table.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file has no ``boroughs`` mapping
        """
        areas_file = Path(path) if path else DEFAULT_AREAS_PATH
        if not areas_file.exists():
            raise FileNotFoundError(f"Area lookup file not found: {areas_file}")

        with open(areas_file, "r") as f:
            data = yaml.safe_load(f) or {}

        boroughs = data.get("boroughs")
        if not isinstance(boroughs, dict):
            raise ValueError(f"Area lookup file {areas_file} must define a 'boroughs' mapping")

        lookup = cls(boroughs)
        logger.debug(
            f"Loaded {len(lookup._borough_by_neighborhood)} neighborhoods "
            f"in {len(boroughs)} boroughs from {areas_file}"
        )
        return lookup

    def is_borough(self, label: str) -> bool:
        """Check if a label is a coarse (borough-level) label."""
        return label in self._neighborhoods_by_borough

    def borough_for(self, neighborhood: str) -> Optional[str]:
        """Return the borough a neighborhood belongs to, if known."""
        return self._borough_by_neighborhood.get(neighborhood)

    def neighborhoods_in(self, borough: str) -> List[str]:
        return list(self._neighborhoods_by_borough.get(borough, []))

    @property
    def boroughs(self) -> List[str]:
        return list(self._neighborhoods_by_borough)
