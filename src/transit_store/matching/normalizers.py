import re
import unicodedata
from functools import lru_cache

# Letters that NFD cannot decompose into base letter + combining mark
TURKISH_FOLDS = str.maketrans({
    "ı": "i",
    "İ": "i",
    "ş": "s",
    "Ş": "s",
    "ğ": "g",
    "Ğ": "g",
    "ü": "u",
    "Ü": "u",
    "ö": "o",
    "Ö": "o",
    "ç": "c",
    "Ç": "c",
})

COMBINING_MARKS = re.compile(r"[\u0300-\u036f]")

# Possessive forms used on official signage -> base form
# "Konak İskelesi" and "Konak İskele" are the same pier.
MODE_SUFFIXES: dict[str, str] = {
    "iskelesi": "iskele",
    "istasyonu": "istasyon",
    "duragi": "durak",
    "gari": "gar",
}

# Trailing words that name the mode rather than the place
TRAILING_MODE_WORDS = frozenset({
    "metro",
    "metrosu",
    "tramvay",
    "tram",
    "durak",
    "istasyon",
    "iskele",
    "gar",
    "izban",
})

DIGITS = re.compile(r"(\d+)")


@lru_cache(maxsize=8192)
def remove_accents(text: str) -> str:
    """Remove combining diacritical marks (U+0300-U+036F).

    Example: "Güzelyalı" -> "Guzelyalı" (dotless i has no decomposition)
    """
    return COMBINING_MARKS.sub("", unicodedata.normalize("NFD", text))


@lru_cache(maxsize=8192)
def fold_text(text: str) -> str:
    """Fold text for accent-insensitive matching.

    - Removes diacritics
    - Maps Turkish letters NFD leaves alone (ı, İ, ş, ğ, ...)
    - Converts to lowercase
    - Normalizes whitespace

    Example: "  Çankaya   Şehitler " -> "cankaya sehitler"
    """
    # İ decomposes to I + U+0307, so the explicit map runs on the raw text first
    result = remove_accents(text.translate(TURKISH_FOLDS))
    result = result.translate(TURKISH_FOLDS).lower()
    return " ".join(result.split())


@lru_cache(maxsize=8192)
def normalize_stop_name(name: str) -> str:
    """Full normalized form of a stop name used for matching.

    Folds the text and canonicalizes possessive mode suffixes so that
    signage variants land in the same search bucket.

    Example: "Konak İskelesi" -> "konak iskele"
    """
    words = fold_text(name).split(" ")
    return " ".join(MODE_SUFFIXES.get(word, word) for word in words)


@lru_cache(maxsize=8192)
def base_station_name(name: str) -> str:
    """Station name with trailing mode words removed.

    Never strips a name down to nothing.

    Example: "Hilal Metro" -> "hilal", "Halkapınar Metro İstasyonu" -> "halkapinar"
    """
    words = normalize_stop_name(name).split(" ")
    while len(words) > 1 and words[-1] in TRAILING_MODE_WORDS:
        words.pop()
    return " ".join(words)


def natural_sort_key(text: str | None) -> tuple[tuple[int, int | str], ...]:
    """Accent-insensitive, numeric-aware sort key.

    Example: sorted(["10", "9", "Çiğli"], key=natural_sort_key) -> ["9", "10", "Çiğli"]
    """
    if not text:
        return ()
    parts = DIGITS.split(fold_text(text))
    return tuple((0, int(part)) if part.isdigit() else (1, part) for part in parts if part)


def contains_keyword(name: str, keywords: frozenset[str] | tuple[str, ...]) -> bool:
    """Return True if any keyword appears in the normalized name.

    Keywords are compared in their normalized form, so "İskele" matches
    "iskele" and "İZDENİZ" matches "izdeniz".
    """
    normalized = normalize_stop_name(name)
    return any(normalize_stop_name(keyword) in normalized for keyword in keywords)
