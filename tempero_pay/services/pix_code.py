# tempero_pay/services/pix_code.py
"""
BR Code (PIX "Copia e Cola") estático.

Cada campo é `ID(2) + tamanho(2) + valor`; os campos 26 (conta do recebedor)
e 62 (dados adicionais) carregam subcampos no mesmo formato. O payload
termina com `6304` + CRC16-CCITT (poly 0x1021, init 0xFFFF) em 4 dígitos hex.
"""
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

GUI = "br.gov.bcb.pix"
MAX_NAME = 25
MAX_CITY = 15
MAX_TXID = 25
MAX_FIELD = 99

KEY_TYPES = ("cpf", "cnpj", "phone", "email", "random")

_NON_DIGIT = re.compile(r"\D")
_PHONE_RE = re.compile(r"^(\+?55)?[1-9][0-9]{10,11}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class PixCodeError(ValueError):
    pass


@dataclass(frozen=True)
class PixPaymentData:
    pix_key: str
    pix_key_type: str
    merchant_name: str
    merchant_city: str
    amount: Decimal | None = None  # reais
    tx_id: str | None = None
    description: str | None = None


def crc16_ccitt(payload: str) -> str:
    crc = 0xFFFF
    for byte in payload.encode("utf-8"):
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return f"{crc:04X}"


def _field(tag: str, value: str) -> str:
    if len(value) > MAX_FIELD:
        raise PixCodeError(f"campo {tag} excede {MAX_FIELD} caracteres")
    return f"{tag}{len(value):02d}{value}"


def _ascii_fold(text: str) -> str:
    nfd = unicodedata.normalize("NFD", text or "")
    return "".join(c for c in nfd if not unicodedata.combining(c)).encode("ascii", "ignore").decode()


def normalize_text(text: str, limit: int) -> str:
    folded = re.sub(r"[^A-Za-z0-9 ]", "", _ascii_fold(text))
    return folded.upper().strip()[:limit].strip()


def detect_pix_key_type(key: str) -> str:
    key = (key or "").strip()
    if _EMAIL_RE.match(key):
        return "email"
    # EVP (UUID) tem letras; chaves numéricas só levam dígitos e pontuação
    if not re.fullmatch(r"[\d\s().+/\-]+", key):
        return "random"
    digits = _NON_DIGIT.sub("", key)
    if len(digits) == 11 and not key.startswith("+"):
        return "cpf"
    if len(digits) == 14:
        return "cnpj"
    if _PHONE_RE.match(digits):
        return "phone"
    return "random"


def format_pix_key(key: str, key_type: str) -> str:
    digits = _NON_DIGIT.sub("", key or "")
    if key_type == "cpf":
        return digits.zfill(11)
    if key_type == "cnpj":
        return digits.zfill(14)
    if key_type == "phone":
        # DDD + número tem 10 ou 11 dígitos; acima disso já veio com o 55
        if len(digits) > 11 and digits.startswith("55"):
            return f"+{digits}"
        return f"+55{digits}"
    if key_type == "email":
        return key.strip().lower()
    return key.strip()


def format_amount(amount: Decimal | float | int) -> str:
    return str(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def generate_pix_code(data: PixPaymentData) -> str:
    if data.pix_key_type not in KEY_TYPES:
        raise PixCodeError(f"tipo de chave desconhecido: {data.pix_key_type}")
    key = format_pix_key(data.pix_key, data.pix_key_type)
    if not key:
        raise PixCodeError("chave PIX vazia")

    account = _field("00", GUI) + _field("01", key)
    if data.description:
        room = MAX_FIELD - len(account) - 4
        desc = _ascii_fold(data.description).strip()[: min(72, room)]
        if desc:
            account += _field("02", desc)

    has_amount = data.amount is not None and Decimal(str(data.amount)) > 0

    code = _field("00", "01")
    code += _field("01", "12" if has_amount else "11")
    code += _field("26", account)
    code += _field("52", "0000")
    code += _field("53", "986")
    if has_amount:
        code += _field("54", format_amount(data.amount))
    code += _field("58", "BR")
    code += _field("59", normalize_text(data.merchant_name, MAX_NAME) or "N")
    code += _field("60", normalize_text(data.merchant_city, MAX_CITY) or "N")

    txid = re.sub(r"[^A-Za-z0-9]", "", data.tx_id or "")[:MAX_TXID]
    code += _field("62", _field("05", txid or "***"))

    code += "6304"
    return code + crc16_ccitt(code)


def _split_fields(payload: str) -> dict[str, str]:
    fields: dict[str, str] = {}
    pos = 0
    while pos < len(payload):
        if pos + 4 > len(payload):
            raise PixCodeError(f"campo truncado na posição {pos}")
        tag = payload[pos:pos + 2]
        size_raw = payload[pos + 2:pos + 4]
        if not size_raw.isdigit():
            raise PixCodeError(f"tamanho inválido no campo {tag}")
        size = int(size_raw)
        value = payload[pos + 4:pos + 4 + size]
        if len(value) != size:
            raise PixCodeError(f"campo {tag} truncado")
        fields[tag] = value
        pos += 4 + size
    return fields


def parse_pix_code(code: str) -> dict:
    """Decodifica o payload em um dict por ID; 26 e 62 viram dicts de subcampos."""
    fields = _split_fields(code)
    parsed: dict = dict(fields)
    for tag in ("26", "62"):
        if tag in fields:
            parsed[tag] = _split_fields(fields[tag])
    return parsed


def validate_pix_code(code: str) -> bool:
    if not code or len(code) < 50 or not code.startswith("000201"):
        return False
    if not re.search(r"6304[0-9A-F]{4}$", code):
        return False
    if crc16_ccitt(code[:-4]) != code[-4:]:
        return False
    try:
        fields = parse_pix_code(code)
    except PixCodeError:
        return False
    return fields.get("26", {}).get("00", "").lower() == GUI
