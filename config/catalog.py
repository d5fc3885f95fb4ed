"""Coaching option and expert catalog loaded from YAML."""

import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from schemas.coaching import CoachingOption, CoachingExpert

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "coaching_options.yaml"
DEFAULT_EXPERT = CoachingExpert(name="Salli", avatar="/t2.jpg")


class CoachingCatalog:
    """Read-only lookup over coaching options and experts."""

    def __init__(self, catalog_path: Optional[str] = None):
        """
        Initialize catalog.

        Args:
            catalog_path: Path to the catalog YAML (default: bundled file)
        """
        self.catalog_path = Path(catalog_path) if catalog_path else DEFAULT_CATALOG_PATH
        data = self._load_yaml(self.catalog_path)

        self.options: Dict[str, CoachingOption] = {}
        for raw in data.get("coaching_options") or []:
            option = CoachingOption(**raw)
            self.options[option.name] = option

        self.experts: Dict[str, CoachingExpert] = {}
        for raw in data.get("coaching_experts") or []:
            expert = CoachingExpert(**raw)
            self.experts[expert.name] = expert

        logger.info(
            f"Loaded {len(self.options)} coaching options and "
            f"{len(self.experts)} experts from {self.catalog_path}"
        )

    def _load_yaml(self, path: Path) -> dict:
        """Load YAML file."""
        if not path.exists():
            logger.warning(f"Catalog file not found: {path}")
            return {}
        with open(path, "r") as f:
            return yaml.safe_load(f) or {}

    def get_option(self, name: str) -> Optional[CoachingOption]:
        """Find a coaching option by name."""
        option = self.options.get(name)
        if option is None:
            logger.error(f"No coaching option found for: {name}")
        return option

    def get_expert(self, name: str) -> CoachingExpert:
        """Find an expert by name, falling back to the default persona."""
        return self.experts.get(name, DEFAULT_EXPERT)

    def option_names(self) -> List[str]:
        return list(self.options)

    def expert_names(self) -> List[str]:
        return list(self.experts)
