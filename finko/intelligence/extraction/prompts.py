from typing import Optional

from finko.intelligence.categorization.constants import CATEGORIES

_CATEGORY_LIST = ", ".join(CATEGORIES)

_RESPONSE_FORMAT = f"""Responde SOLO con un objeto JSON de la forma {{"transactions": [...]}}.
Para cada transacción:
- merchant: nombre del comercio o descripción de la transacción
- amount: monto como número (sin símbolos de moneda)
- date: fecha en formato YYYY-MM-DD (si no está clara, usa la fecha del correo)
- category: UNA de estas categorías: {_CATEGORY_LIST}
- type: "expense" para gastos/cargos, "income" para abonos/depósitos

Si no encuentras transacciones válidas, devuelve {{"transactions": []}}."""

DEFAULT_SYSTEM_PROMPT = f"""Eres un asistente que extrae transacciones bancarias del contenido de correos electrónicos del Banco de Chile.

Extrae TODAS las transacciones del correo.

{_RESPONSE_FORMAT}"""


def build_system_prompt(
    bank_name: Optional[str] = None, extraction_instructions: Optional[str] = None
) -> str:
    if not bank_name or not extraction_instructions:
        return DEFAULT_SYSTEM_PROMPT
    return f"""Eres un asistente que extrae transacciones bancarias del contenido de correos electrónicos de {bank_name}.

{extraction_instructions}

{_RESPONSE_FORMAT}"""


def build_user_prompt(email_body: str, email_date: Optional[str] = None) -> str:
    if email_date:
        return f"Fecha del correo: {email_date}\n\nContenido del correo:\n{email_body}"
    return f"Contenido del correo:\n{email_body}"
