"""
Category taxonomy for imported bank transactions.
"""

# Fixed set the extraction prompt offers; anything else is stored as "Otros"
CATEGORIES = [
    "Deporte",
    "Ropa",
    "Recreacional",
    "TC",
    "Cursos",
    "Supermercado",
    "Transporte",
    "Vacaciones",
    "Ahorros",
    "Salud",
    "Hogar",
    "Otros",
]

FALLBACK_CATEGORY = "Otros"

# Placeholder categories for the webhook path, which has no classifier
WEBHOOK_EXPENSE_CATEGORY = "Otros"
WEBHOOK_INCOME_CATEGORY = "Ingresos"


def normalize_category(category: object) -> str:
    return category if isinstance(category, str) and category in CATEGORIES else FALLBACK_CATEGORY
