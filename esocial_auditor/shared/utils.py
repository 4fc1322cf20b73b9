import numbers
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any


def safe_decimal(value: Any) -> Decimal:
    """Converte qualquer entrada (texto do XML, coluna do banco) para Decimal seguro."""
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, numbers.Number):
        # Também cobre os escalares do numpy vindos do pandas
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip().replace(",", ".")
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return Decimal("0.00")
    return Decimal("0.00")


def arredondar_centavos(valor: Any) -> float:
    """Arredonda para 2 casas com meia-unidade para cima (equivalente a round(x*100)/100)."""
    try:
        return float(
            safe_decimal(valor).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        )
    except InvalidOperation:
        return 0.0


def safe_float(value: Any) -> float:
    """parseFloat tolerante: texto vazio ou inválido vira 0.0."""
    return float(safe_decimal(value))


def incidencia_ativa(codigo: Any) -> bool:
    """Código de incidência "00" (ou vazio/nulo) significa que o tributo não incide."""
    if codigo is None:
        return False
    codigo = str(codigo).strip()
    return codigo not in ("", "00")
