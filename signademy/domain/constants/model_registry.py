"""
Model registry
--------------

Static mapping from model category to the canonical download URL, display
name and cache key of its gesture classifier asset. Custom URLs supplied by
lesson content are cached under the URL itself.
"""

# -----------------------------------------------------------------------------
# Standard library
# -----------------------------------------------------------------------------
from dataclasses import dataclass
from typing import Dict, List, Optional

# -----------------------------------------------------------------------------
# Application
# -----------------------------------------------------------------------------
from ...core.config import get_settings
from ...exceptions import UnknownModelCategoryError


class ModelCategories:
    """Model category identifiers"""
    ALPHABET = "alphabet"
    NUMBERS = "numbers"
    COLORS = "colors"
    BASIC_WORDS = "basicWords"
    FAMILY = "family"
    FOOD = "food"


# category -> (asset file name, display name)
MODEL_FILES: Dict[str, tuple] = {
    ModelCategories.ALPHABET: ("letters.task", "Letters (A-Z)"),
    ModelCategories.NUMBERS: ("numbers.task", "Numbers (0-9)"),
    ModelCategories.COLORS: ("colors.task", "Colors"),
    ModelCategories.BASIC_WORDS: ("basicWords.task", "Basic Words"),
    ModelCategories.FAMILY: ("family.task", "Family & People"),
    ModelCategories.FOOD: ("food.task", "Food & Drinks"),
}


@dataclass(frozen=True)
class ModelSource:
    """
    Where a classifier asset comes from and how it is cached.

    key is the category for canonical models and the URL for custom ones.
    """

    key: str
    url: str
    display_name: str
    category: Optional[str] = None

    @property
    def is_custom(self) -> bool:
        return self.key != self.category


class ModelRegistry:
    """Read-only lookup of model categories."""

    def __init__(self, storage_url: str, bucket: str) -> None:
        base = storage_url.rstrip("/")
        self._sources: Dict[str, ModelSource] = {
            category: ModelSource(
                key=category,
                url=f"{base}/storage/v1/object/public/{bucket}/{file_name}",
                display_name=display_name,
                category=category,
            )
            for category, (file_name, display_name) in MODEL_FILES.items()
        }

    def categories(self) -> List[str]:
        return list(self._sources.keys())

    def sources(self) -> List[ModelSource]:
        return list(self._sources.values())

    def __contains__(self, category: object) -> bool:
        return category in self._sources

    def resolve(self, category: str) -> ModelSource:
        """
        Resolve a category to its canonical source.

        Raises:
            UnknownModelCategoryError: If the category is not registered
        """
        source = self._sources.get(category)
        if source is None:
            raise UnknownModelCategoryError(category)
        return source

    def custom(self, url: str, category: Optional[str] = None) -> ModelSource:
        """Build a source for a lesson-supplied model URL, keyed by the URL."""
        display_name = url
        if category in self._sources:
            display_name = self._sources[category].display_name
        return ModelSource(key=url, url=url, display_name=display_name, category=category)

    def source_for(self, category: str, custom_url: Optional[str] = None) -> ModelSource:
        """Custom URL wins over the canonical one when present."""
        if custom_url:
            return self.custom(custom_url, category)
        return self.resolve(category)

    def display_name(self, key: str) -> str:
        source = self._sources.get(key)
        return source.display_name if source else key


_registry: Optional[ModelRegistry] = None


def get_model_registry() -> ModelRegistry:
    """Get the model registry built from settings (singleton pattern)"""
    global _registry
    if _registry is None:
        settings = get_settings()
        _registry = ModelRegistry(settings.model_storage_url, settings.model_bucket)
    return _registry
