"""
Registros tipados para los campos JSON (historial de pagos, copropietarios,
separación de bienes). Se validan al entrar por la API y se guardan como
listas/dicts planos en ``JSONField``.
"""
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from .errors import BusinessRuleError


def _require_mapping(value, label):
    if not isinstance(value, dict):
        raise BusinessRuleError(f"{label} debe ser un objeto", code="invalid_record")
    return value


def _clean_str(value):
    return str(value).strip() if value is not None else ""


@dataclass(frozen=True)
class CoOwner:
    name: str
    document_number: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""

    @classmethod
    def from_dict(cls, data):
        data = _require_mapping(data, "Copropietario")
        name = _clean_str(data.get("name"))
        if not name:
            raise BusinessRuleError("El copropietario requiere nombre", code="invalid_co_owner")
        return cls(
            name=name,
            document_number=_clean_str(data.get("documentNumber", data.get("document_number"))),
            phone=_clean_str(data.get("phone")),
            email=_clean_str(data.get("email")),
            address=_clean_str(data.get("address")),
        )


@dataclass(frozen=True)
class SeparatePropertyData:
    spouse_name: str
    spouse_document_number: str = ""
    registry_entry: str = ""

    @classmethod
    def from_dict(cls, data):
        data = _require_mapping(data, "Separación de bienes")
        spouse_name = _clean_str(data.get("spouseName", data.get("spouse_name")))
        if not spouse_name:
            raise BusinessRuleError(
                "La separación de bienes requiere el nombre del cónyuge",
                code="invalid_separate_property",
            )
        return cls(
            spouse_name=spouse_name,
            spouse_document_number=_clean_str(
                data.get("spouseDocumentNumber", data.get("spouse_document_number"))
            ),
            registry_entry=_clean_str(data.get("registryEntry", data.get("registry_entry"))),
        )


@dataclass(frozen=True)
class PaymentHistoryEntry:
    date: str
    amount: str
    method: str = ""
    bank_name: str = ""
    reference: str = ""
    status: str = "PAID"
    notes: str = ""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    STATUSES = ("PAID", "PENDING", "VOID")

    @classmethod
    def from_dict(cls, data):
        data = _require_mapping(data, "Historial de pago")
        try:
            paid_on = date.fromisoformat(_clean_str(data.get("date")))
        except ValueError:
            raise BusinessRuleError(
                "Fecha inválida en historial de pago (YYYY-MM-DD)", code="invalid_payment_history"
            )
        try:
            amount = Decimal(str(data.get("amount")))
        except (InvalidOperation, TypeError):
            raise BusinessRuleError("Monto inválido en historial de pago", code="invalid_payment_history")
        if not amount.is_finite():
            raise BusinessRuleError("Monto inválido en historial de pago", code="invalid_payment_history")
        if amount <= 0:
            raise BusinessRuleError(
                "El monto del historial de pago debe ser mayor a cero", code="invalid_payment_history"
            )
        status = _clean_str(data.get("status")).upper() or "PAID"
        if status not in cls.STATUSES:
            raise BusinessRuleError(
                f"Estado inválido en historial de pago: {status}", code="invalid_payment_history"
            )
        kwargs = dict(
            date=paid_on.isoformat(),
            amount=str(amount),
            method=_clean_str(data.get("method")),
            bank_name=_clean_str(data.get("bankName", data.get("bank_name"))),
            reference=_clean_str(data.get("reference")),
            status=status,
            notes=_clean_str(data.get("notes")),
        )
        if data.get("id"):
            kwargs["id"] = _clean_str(data["id"])
        return cls(**kwargs)


def parse_records(values, record_cls) -> List[dict]:
    """Valida una lista de dicts y la devuelve normalizada para un JSONField."""
    if values is None:
        return []
    if not isinstance(values, list):
        raise BusinessRuleError("Se esperaba una lista", code="invalid_record")
    return [asdict(record_cls.from_dict(item)) for item in values]


def parse_record(value, record_cls) -> Optional[dict]:
    if value in (None, "", {}):
        return None
    return asdict(record_cls.from_dict(value))
