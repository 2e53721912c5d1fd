"""Ingredient name normalization helpers."""
import re
import unicodedata

UNIT_WORDS = (
    "kg", "g", "gr", "mg", "l", "lt", "ml", "cl", "dl",
    "un", "unit", "units", "pc", "pcs", "piece", "pieces",
    "oz", "lb", "lbs", "cup", "cups", "tbsp", "tsp",
)

_UNIT_PATTERN = "|".join(sorted(UNIT_WORDS, key=len, reverse=True))
_PARENTHESES = re.compile(r"\([^)]*\)|\[[^\]]*\]")
_LEADING_AMOUNT = re.compile(rf"^\d+(?:[.,]\d+)?\s*(?:(?:{_UNIT_PATTERN})\b)?\s*(?:of\s+)?")
_TRAILING_UNIT = re.compile(rf"\s+(?:\d+(?:[.,]\d+)?\s*)?(?:{_UNIT_PATTERN})$")
_NON_WORD = re.compile(r"[^\w\s-]")
_SPACES = re.compile(r"\s+")


def strip_diacritics(text: str) -> str:
    """
    Remove combining marks.

    "Açúcar" -> "Acucar"
    """
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_ingredient_name(name: str) -> str:
    """
    Fold an ingredient name to its comparison key.

    "  Tomato (kg) "   -> "tomato"
    "500 g of Arroz"   -> "arroz"
    "Feijão Preto 1kg" -> "feijao preto"

    Args:
        name: raw name as typed by the user or returned by the model

    Returns:
        lower-case name without diacritics, unit annotations or extra spaces
    """
    if not name:
        return ""

    text = strip_diacritics(name).lower()
    text = _PARENTHESES.sub(" ", text)
    text = _SPACES.sub(" ", text).strip()
    text = _LEADING_AMOUNT.sub("", text)
    # "feijao 1 kg" and "arroz kg" both drop the unit tail; a bare unit word stays
    while True:
        folded = _TRAILING_UNIT.sub("", text)
        if folded == text or not folded:
            break
        text = folded
    text = _NON_WORD.sub(" ", text)
    return _SPACES.sub(" ", text).strip()


def display_name(normalized: str) -> str:
    """Capitalize a normalized name for recipe titles."""
    return normalized[:1].upper() + normalized[1:]
