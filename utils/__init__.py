# utils/__init__.py
from .portal_source_classifier import (
    classify_source,
    normalize_publication_plan,
    WIMOVEIS_PLAN_PREFIX,
    IMOVELWEB_PLAN_PREFIX,
    SOURCE_WIMOVEIS,
    SOURCE_IMOVELWEB,
    SOURCE_FALLBACK,
)

__all__ = [
    'classify_source', 'normalize_publication_plan',
    'WIMOVEIS_PLAN_PREFIX', 'IMOVELWEB_PLAN_PREFIX',
    'SOURCE_WIMOVEIS', 'SOURCE_IMOVELWEB', 'SOURCE_FALLBACK',
]
