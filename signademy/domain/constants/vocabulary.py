"""Sign vocabulary per category and classifier label normalization"""

from typing import Dict, List


# Lower-cased classifier outputs that map to a canonical sign
WORD_MAPPINGS: Dict[str, Dict[str, str]] = {
    "basicWords": {
        "thank you": "THANK",
        "thankyou": "THANK",
        "thanks": "THANK",
        "goodbye": "GOODBYE",
        "good bye": "GOODBYE",
        "bye": "GOODBYE",
        "hello": "HELLO",
        "hi": "HELLO",
        "please": "PLEASE",
        "yes": "YES",
        "no": "NO",
    },
}

MODULE_ITEMS: Dict[str, List[str]] = {
    "alphabet": list("ABCDEFGHIJKLMNOPQRSTUVWXYZ"),
    "numbers": [str(n) for n in range(10)],
    "colors": ["Red", "Blue", "Green", "Yellow", "Orange", "Purple", "Pink", "Brown", "Black", "White"],
    "basicWords": ["Hello", "Goodbye", "Please", "ThankYou", "Yes", "No"],
    "family": ["Mother", "Father", "Baby", "Boy", "Girl"],
    "food": ["Apple", "Eat", "Drink", "Milk", "Pizza", "Water"],
}

CHALLENGE_WORDS: Dict[str, List[str]] = {
    "alphabet": list("ABCDEFGHIJKLMNOPQRSTUVWXYZ"),
    "numbers": [str(n) for n in range(10)],
    "colors": ["Black", "Blue", "Green", "Orange", "Purple", "Red", "White", "Yellow"],
    "basicWords": ["Hello", "Goodbye", "Please", "ThankYou", "Yes", "No"],
    "family": ["Mother", "Father", "Baby", "Boy", "Girl"],
    "food": ["Apple", "Drink", "Eat", "Milk", "Pizza", "Water"],
}


def normalize_model_output(label: str) -> str:
    """
    Normalize a classifier label (or a target word) to its canonical sign.

    Known aliases ("thank you", "bye", ...) map to their sign; anything else
    is upper-cased.
    """
    cleaned = (label or "").strip()
    lowered = cleaned.lower()
    for mapping in WORD_MAPPINGS.values():
        if lowered in mapping:
            return mapping[lowered]
    return cleaned.upper()
