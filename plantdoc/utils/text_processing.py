import re
import unicodedata
from difflib import SequenceMatcher
from typing import List, Optional, Set

# Anything that is not a letter or digit collapses to one space
_NON_WORD = re.compile(r'[\W_]+', flags=re.UNICODE)

# Vietnamese đ/Đ has no NFD decomposition
_SPECIAL_FOLDS = str.maketrans({'đ': 'd', 'Đ': 'd'})

RAW_EXCERPT_LIMIT = 500

# Classifier words that say nothing about which plant ("cây" = plant, "hoa" = flower)
GENERIC_NAME_TOKENS = frozenset({"cay", "hoa", "plant", "tree", "flower"})


def strip_diacritics(text: str) -> str:
    """
    Remove combining marks (Vietnamese tones, accents) after NFD decomposition.
    "Lá vàng, đốm nâu" -> "La vang, dom nau"
    """
    text = text.translate(_SPECIAL_FOLDS)
    decomposed = unicodedata.normalize('NFD', text)
    return ''.join(c for c in decomposed if not unicodedata.combining(c))


def normalize_description(text: Optional[str]) -> str:
    """
    Canonical comparison key for a free-text complaint.
    Case-fold, strip diacritics, collapse punctuation/whitespace runs, trim.
    """
    if not text:
        return ""
    folded = strip_diacritics(text.casefold())
    return _NON_WORD.sub(' ', folded).strip()


def tokenize(normalized: str) -> List[str]:
    return normalized.split() if normalized else []


def contains_phrase(normalized_text: str, normalized_phrase: str) -> bool:
    """Whole-word phrase containment on already normalized strings"""
    if not normalized_phrase or not normalized_text:
        return False
    return f" {normalized_phrase} " in f" {normalized_text} "


def best_window_ratio(normalized_text: str, normalized_phrase: str) -> float:
    """
    Best SequenceMatcher ratio of phrase against every word window
    of the same length in text (used for typo-tolerant matching).
    """
    words = tokenize(normalized_text)
    phrase_len = len(tokenize(normalized_phrase))
    if not words or phrase_len == 0:
        return 0.0

    best = 0.0
    for i in range(0, max(1, len(words) - phrase_len + 1)):
        window = ' '.join(words[i:i + phrase_len])
        ratio = SequenceMatcher(None, window, normalized_phrase).ratio()
        if ratio > best:
            best = ratio
            if best == 1.0:
                break
    return best


def _name_tokens(text: Optional[str]) -> List[str]:
    return [t for t in tokenize(normalize_description(text)) if t not in GENERIC_NAME_TOKENS]


def _contains_tokens(tokens: List[str], sub: List[str]) -> bool:
    n = len(sub)
    return any(tokens[i:i + n] == sub for i in range(len(tokens) - n + 1))


def fuzzy_name_match(candidate: Optional[str], query: Optional[str]) -> bool:
    """
    Whole-token containment in either direction, ignoring generic words
    ("lua" ~ "Cây lúa", but "cây" alone matches nothing).
    """
    a = _name_tokens(candidate)
    b = _name_tokens(query)
    if not a or not b:
        return False
    return _contains_tokens(a, b) or _contains_tokens(b, a)


def character_trigrams(text: str) -> Set[str]:
    """
    Trigram set of a string, each word padded with two leading
    spaces and one trailing space (same shape as pg_trgm).
    """
    grams = set()
    for word in tokenize(normalize_description(text)):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            grams.add(padded[i:i + 3])
    return grams


def trigram_jaccard(a: str, b: str) -> float:
    grams_a = character_trigrams(a)
    grams_b = character_trigrams(b)
    if not grams_a or not grams_b:
        return 0.0
    return len(grams_a & grams_b) / len(grams_a | grams_b)


def clean_json_response(raw_text: str) -> str:
    """Strip markdown code fences and surrounding chatter from a model's JSON answer"""
    json_str = (raw_text or "").strip()

    if "```" in json_str:
        match = re.search(r'```(?:json)?\s*([\s\S]*?)```', json_str)
        if match:
            json_str = match.group(1)

    # Find JSON object if there's extra text
    start_idx = json_str.find("{")
    end_idx = json_str.rfind("}")
    if start_idx != -1 and end_idx != -1:
        json_str = json_str[start_idx:end_idx + 1]

    json_str = json_str.strip()
    json_str = re.sub(r',\s*}', '}', json_str)  # trailing comma before }
    json_str = re.sub(r',\s*]', ']', json_str)  # trailing comma before ]
    return json_str


def truncate_excerpt(text: Optional[str], limit: int = RAW_EXCERPT_LIMIT) -> Optional[str]:
    if text is None:
        return None
    return text if len(text) <= limit else text[:limit] + "..."
