# tempero_pay/services/tax_id.py
from __future__ import annotations

import re
from dataclasses import dataclass

_NON_DIGIT = re.compile(r"\D")


def only_digits(value: str | None) -> str:
    return _NON_DIGIT.sub("", value or "")


def validate_cpf(value: str) -> bool:
    digits = only_digits(value)
    if len(digits) != 11 or len(set(digits)) == 1:
        return False

    for size in (9, 10):
        total = sum(int(d) * (size + 1 - i) for i, d in enumerate(digits[:size]))
        check = (total * 10) % 11
        if check == 10:
            check = 0
        if check != int(digits[size]):
            return False
    return True


_CNPJ_W1 = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
_CNPJ_W2 = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)


def validate_cnpj(value: str) -> bool:
    digits = only_digits(value)
    if len(digits) != 14 or len(set(digits)) == 1:
        return False

    for weights in (_CNPJ_W1, _CNPJ_W2):
        size = len(weights)
        rest = sum(int(d) * w for d, w in zip(digits[:size], weights)) % 11
        check = 0 if rest < 2 else 11 - rest
        if check != int(digits[size]):
            return False
    return True


@dataclass(frozen=True)
class TaxIdCheck:
    valid: bool
    kind: str | None  # cpf | cnpj
    message: str


def check_tax_id(value: str | None) -> TaxIdCheck:
    """Valida CPF (até 11 dígitos) ou CNPJ (acima disso) com a mensagem para o cliente."""
    digits = only_digits(value)
    if not digits:
        return TaxIdCheck(False, None, "Informe o CPF ou CNPJ")

    if len(digits) <= 11:
        if len(digits) < 11:
            return TaxIdCheck(False, "cpf", "CPF incompleto")
        if validate_cpf(digits):
            return TaxIdCheck(True, "cpf", "CPF válido")
        return TaxIdCheck(False, "cpf", "CPF inválido")

    if len(digits) < 14:
        return TaxIdCheck(False, "cnpj", "CNPJ incompleto")
    if len(digits) == 14 and validate_cnpj(digits):
        return TaxIdCheck(True, "cnpj", "CNPJ válido")
    return TaxIdCheck(False, "cnpj", "CNPJ inválido")


def format_tax_id(value: str) -> str:
    d = only_digits(value)
    if len(d) == 11:
        return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}"
    if len(d) == 14:
        return f"{d[:2]}.{d[2:5]}.{d[5:8]}/{d[8:12]}-{d[12:]}"
    return d
