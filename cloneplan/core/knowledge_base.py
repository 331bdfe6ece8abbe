"""Technology knowledge base backed by a YAML profile table.

Lookups are case-insensitive; a miss falls back to a substring match in
either direction, so "react.js" finds React.

Usage:
    kb = TechnologyKnowledgeBase()
    profile = kb.get_technology("Next.js")
    kb.get_alternatives("Next.js")        # ["Nuxt.js", "Remix", "Gatsby"]
    kb.get_learning_resources("React")    # [{"url": ..., "type": "documentation"}]
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_PROFILES_PATH = Path(__file__).parent / "data" / "technology_profiles.yaml"


@dataclass
class TechnologyProfile:
    name: str
    category: str
    difficulty: str = "medium"
    description: str = ""
    alternatives: List[str] = field(default_factory=list)
    cost_estimate: Dict[str, str] = field(default_factory=dict)
    learning_resources: List[str] = field(default_factory=list)
    typical_use_case: str = ""
    market_demand: str = "medium"


def infer_resource_type(url: str) -> str:
    lower = url.lower()
    if any(k in lower for k in ("docs", "documentation", ".dev", "developer.")):
        return "documentation"
    if "tutorial" in lower:
        return "tutorial"
    if any(k in lower for k in ("course", "udemy", "egghead", "university")):
        return "course"
    if "guide" in lower:
        return "guide"
    return "resource"


class TechnologyKnowledgeBase:
    """Profiles indexed by lower-cased name and by category.

    The YAML file is read lazily on first lookup.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path else DEFAULT_PROFILES_PATH
        self._by_name: Dict[str, TechnologyProfile] = {}
        self._by_category: Dict[str, List[TechnologyProfile]] = {}
        self._loaded = False

    def load(self) -> None:
        if self._loaded:
            return
        with open(self._path, "r") as f:
            data = yaml.safe_load(f) or {}

        for raw in data.get("technologies", []):
            profile = TechnologyProfile(**raw)
            self._by_name[profile.name.lower()] = profile
            self._by_category.setdefault(profile.category, []).append(profile)

        self._loaded = True
        logger.info(f"Loaded {len(self._by_name)} technology profiles from {self._path.name}")

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def get_technology(self, name: str) -> Optional[TechnologyProfile]:
        self.load()
        term = name.strip().lower()
        if not term:
            return None
        profile = self._by_name.get(term)
        if profile is not None:
            return profile
        for known, candidate in self._by_name.items():
            if known in term or term in known:
                return candidate
        return None

    def get_by_category(self, category: str) -> List[TechnologyProfile]:
        self.load()
        return list(self._by_category.get(category, []))

    def get_alternatives(self, name: str) -> List[str]:
        profile = self.get_technology(name)
        return list(profile.alternatives) if profile else []

    def get_learning_resources(self, name: str) -> List[Dict[str, str]]:
        profile = self.get_technology(name)
        if profile is None:
            return []
        return [{"url": url, "type": infer_resource_type(url)} for url in profile.learning_resources]

    def __len__(self) -> int:
        self.load()
        return len(self._by_name)
