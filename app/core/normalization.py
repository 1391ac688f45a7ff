import re

DNI_LENGTH = 8
RUC_LENGTH = 11


def normalize_document_number(value: str) -> str:
    """Keep only alphanumeric chars for document identifiers."""
    return re.sub(r"[^A-Za-z0-9]", "", (value or "").strip())


def normalize_phone(value: str) -> str:
    """Keep only digits."""
    return re.sub(r"\D", "", (value or "").strip())


def normalize_currency(value: str) -> str:
    return (value or "").strip().upper()


def document_kind(value: str):
    """
    Classify a Peruvian identity document by length.
    8 digits is a DNI (natural person), 11 digits is a RUC (company).
    """
    digits = normalize_document_number(value)
    if not digits.isdigit():
        return None
    if len(digits) == DNI_LENGTH:
        return "DNI"
    if len(digits) == RUC_LENGTH:
        return "RUC"
    return None
