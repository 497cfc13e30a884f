"""Constants for the sign vocabulary and the model registry"""

from .model_registry import ModelCategories, ModelRegistry, ModelSource, get_model_registry
from .vocabulary import CHALLENGE_WORDS, MODULE_ITEMS, WORD_MAPPINGS, normalize_model_output

__all__ = [
    "ModelCategories",
    "ModelRegistry",
    "ModelSource",
    "get_model_registry",
    "CHALLENGE_WORDS",
    "MODULE_ITEMS",
    "WORD_MAPPINGS",
    "normalize_model_output",
]
