"""
Portal Source Classifier – maps a portal's publication plan to a CRM lead source.

Pure helpers: no CRM or HTTP dependencies, usable from routes, services and scripts.
"""

from typing import Optional

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Publication plan prefixes (case-insensitive)
WIMOVEIS_PLAN_PREFIX = "wim"
IMOVELWEB_PLAN_PREFIX = "imo"

# Default CRM SOURCE_ID values; deployments override them through config
SOURCE_WIMOVEIS = "WIMOVEIS"
SOURCE_IMOVELWEB = "IMOVELWEB"
SOURCE_FALLBACK = "WEB"


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def normalize_publication_plan(publication_plan: Optional[str]) -> str:
    return (publication_plan or "").strip().lower()


def classify_source(
    publication_plan: Optional[str],
    *,
    wimoveis: str = SOURCE_WIMOVEIS,
    imovelweb: str = SOURCE_IMOVELWEB,
    fallback: str = SOURCE_FALLBACK,
) -> str:
    """
    "Wimoveis Destaque" -> wimoveis, "IMOVELWEB SIMPLES" -> imovelweb,
    anything else (or nothing) -> fallback.
    """
    plan = normalize_publication_plan(publication_plan)
    if plan.startswith(WIMOVEIS_PLAN_PREFIX):
        return wimoveis
    if plan.startswith(IMOVELWEB_PLAN_PREFIX):
        return imovelweb
    return fallback
