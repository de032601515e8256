import unicodedata


def remove_tones(s: str) -> str:
    """Lower-case and strip Vietnamese diacritics (``đ`` has no decomposition)."""
    s = s.lower().replace('đ', 'd')
    decomposed = unicodedata.normalize('NFD', s)
    return ''.join(c for c in decomposed if unicodedata.category(c) != 'Mn')


def normalize_search_text(s: str) -> str:
    return remove_tones(s).strip()
