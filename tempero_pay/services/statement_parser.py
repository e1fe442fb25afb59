# tempero_pay/services/statement_parser.py
"""
Leitura de extratos bancários (OFX, CSV/TXT e exportações "xls" em texto
separado por tabulação) para uma lista de `BankTransaction`.

Linhas sem data ou sem valor diferente de zero são ignoradas. Lista vazia
significa que nada pôde ser lido; quem chama decide se isso é erro.
"""
from __future__ import annotations

import csv
import logging
import re
import datetime
from decimal import Decimal, InvalidOperation

from tempero_pay.schemas.statement import BankTransaction

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Transação bancária"

_STMTTRN_RE = re.compile(r"<STMTTRN>(.*?)</STMTTRN>", re.IGNORECASE | re.DOTALL)
_BR_DATE_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_AMOUNT_CHARS_RE = re.compile(r"^[+-]?\s*(R\$)?\s*[+-]?[\d.,\s]+-?$", re.IGNORECASE)
_CENT = Decimal("0.01")


# -------------------- helpers --------------------
def _ofx_tag(block: str, tag: str) -> str | None:
    # SGML OFX não fecha as tags internas; valor vai até o próximo '<' ou fim de linha
    m = re.search(rf"<{tag}>([^<\r\n]*)", block, re.IGNORECASE)
    if not m:
        return None
    value = m.group(1).strip()
    return value or None


def parse_date(raw: str) -> str | None:
    raw = (raw or "").strip()
    m = _BR_DATE_RE.match(raw)
    if m:
        day, month, year = m.groups()
    else:
        m = _ISO_DATE_RE.match(raw)
        if not m:
            return None
        year, month, day = m.groups()
    try:
        return datetime.date(int(year), int(month), int(day)).isoformat()
    except ValueError:
        # 31/02, mês 13 etc.
        return None


def parse_amount(raw: str) -> Decimal | None:
    """
    Converte valores como `R$ 1.234,56`, `-42,50`, `42.50-` ou `1,234.56`.
    O último separador (vírgula ou ponto) seguido de 1 ou 2 dígitos é o decimal.
    """
    text = (raw or "").strip()
    if not text or not _AMOUNT_CHARS_RE.match(text):
        return None

    negative = "-" in text
    digits = re.sub(r"[^\d.,]", "", text)
    if not re.search(r"\d", digits):
        return None

    m = re.search(r"[.,](\d{1,2})$", digits)
    if m:
        integer = re.sub(r"[.,]", "", digits[: m.start()])
        number = f"{integer or '0'}.{m.group(1)}"
    else:
        number = re.sub(r"[.,]", "", digits)

    try:
        value = Decimal(number)
    except InvalidOperation:
        return None
    value = value.quantize(_CENT)
    return -value if negative else value


def _transaction(date: str, amount: Decimal, description: str | None, reference: str | None = None) -> BankTransaction:
    return BankTransaction(
        date=date,
        amount=abs(amount),
        description=(description or "").strip() or DEFAULT_DESCRIPTION,
        type="credit" if amount > 0 else "debit",
        reference=reference,
    )


# -------------------- OFX --------------------
def parse_ofx(content: str) -> list[BankTransaction]:
    out: list[BankTransaction] = []
    for block in _STMTTRN_RE.findall(content or ""):
        try:
            posted = _ofx_tag(block, "DTPOSTED")
            raw_amount = _ofx_tag(block, "TRNAMT")
            if not posted or not raw_amount or len(posted) < 8 or not posted[:8].isdigit():
                continue
            date = parse_date(f"{posted[:4]}-{posted[4:6]}-{posted[6:8]}")
            amount = parse_amount(raw_amount)
            if not date or amount is None or amount == 0:
                continue
            description = _ofx_tag(block, "MEMO") or _ofx_tag(block, "NAME")
            out.append(_transaction(date, amount, description, _ofx_tag(block, "FITID")))
        except (ValueError, InvalidOperation) as e:
            logger.debug("bloco OFX ignorado: %s", e)
    return out


# -------------------- CSV / TXT / XLS(texto) --------------------
def _row_to_transaction(fields: list[str]) -> BankTransaction | None:
    date = None
    amount = None
    used: set[int] = set()

    for i, field in enumerate(fields):
        date = parse_date(field)
        if date:
            used.add(i)
            break
    if date is None:
        return None

    for i, field in enumerate(fields):
        if i in used:
            continue
        value = parse_amount(field)
        if value is not None and value != 0:
            amount = value
            used.add(i)
            break

    if amount is None:
        return None

    description = next(
        (f.strip() for i, f in enumerate(fields) if i not in used and len(f.strip()) > 3),
        None,
    )
    return _transaction(date, amount, description)


def parse_delimited(content: str, delimiter: str | None = None) -> list[BankTransaction]:
    out: list[BankTransaction] = []
    lines = [ln for ln in (content or "").splitlines() if ln.strip()]

    # primeira linha é o cabeçalho
    for line in lines[1:]:
        sep = delimiter or (";" if ";" in line else ",")
        try:
            fields = next(csv.reader([line], delimiter=sep))
            tx = _row_to_transaction(fields)
        except (csv.Error, ValueError) as e:
            logger.debug("linha ignorada: %s", e)
            continue
        if tx is not None:
            out.append(tx)
    return out


def parse_statement(content: str, extension: str) -> list[BankTransaction]:
    ext = (extension or "").lower().lstrip(".")
    if ext == "ofx":
        txs = parse_ofx(content)
    elif ext in ("csv", "txt"):
        txs = parse_delimited(content)
    elif ext in ("xls", "xlsx"):
        txs = parse_delimited(content, delimiter="\t")
    else:
        txs = parse_delimited(content) or parse_ofx(content)

    logger.info("extrato .%s: %d transações lidas", ext or "?", len(txs))
    return txs
