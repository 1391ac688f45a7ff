"""
Captación: clientes, leads y registro de contactos desde la landing.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from core.errors import BusinessRuleError, ConflictError, InvalidTransitionError
from core.models import AuditLog
from core.normalization import DNI_LENGTH, RUC_LENGTH, document_kind, normalize_document_number, normalize_phone
from core.records import CoOwner, SeparatePropertyData, parse_record, parse_records
from core.sequences import create_with_code

from .models import Client, Lead, LeadTask, Referral

logger = logging.getLogger(__name__)

CLIENT_FIELDS = (
    "name",
    "dni",
    "ruc",
    "company_name",
    "phone_number",
    "email",
    "address",
    "country",
    "type",
    "co_owners",
    "separate_property",
    "separate_property_data",
)
LEAD_FIELDS = (
    "client",
    "project",
    "assigned_to",
    "status",
    "capture_source",
    "completion_reason",
    "cancellation_reason",
)


# ── Clientes ──────────────────────────────────────────────────

def _clean_client_values(values):
    cleaned = {k: v for k, v in values.items() if k in CLIENT_FIELDS}
    for key in ("name", "company_name", "email", "address", "country"):
        if key in cleaned:
            cleaned[key] = (cleaned[key] or "").strip()
    if "phone_number" in cleaned:
        cleaned["phone_number"] = normalize_phone(cleaned["phone_number"])
    if "dni" in cleaned:
        cleaned["dni"] = normalize_document_number(cleaned["dni"])
        if cleaned["dni"] and (len(cleaned["dni"]) != DNI_LENGTH or not cleaned["dni"].isdigit()):
            raise BusinessRuleError("El DNI debe tener 8 dígitos", code="invalid_dni")
    if "ruc" in cleaned:
        cleaned["ruc"] = normalize_document_number(cleaned["ruc"])
        if cleaned["ruc"] and (len(cleaned["ruc"]) != RUC_LENGTH or not cleaned["ruc"].isdigit()):
            raise BusinessRuleError("El RUC debe tener 11 dígitos", code="invalid_ruc")
    if "type" in cleaned and cleaned["type"] and cleaned["type"] not in Client.Type.values:
        raise BusinessRuleError(f"Tipo de cliente inválido: {cleaned['type']}", code="invalid_type")
    if "co_owners" in cleaned:
        cleaned["co_owners"] = parse_records(cleaned["co_owners"], CoOwner)
    if "separate_property_data" in cleaned:
        cleaned["separate_property_data"] = parse_record(
            cleaned["separate_property_data"], SeparatePropertyData
        )
    return cleaned


def _validate_client(client):
    if not client.phone_number:
        raise BusinessRuleError("El número de celular es requerido", code="missing_phone_number")
    if client.type == Client.Type.NATURAL and not client.name:
        raise BusinessRuleError("El cliente natural requiere nombre", code="missing_name")
    if client.type == Client.Type.JURIDICO:
        if not client.company_name:
            raise BusinessRuleError("El cliente jurídico requiere razón social", code="missing_company_name")
        if not client.ruc:
            raise BusinessRuleError("El cliente jurídico requiere RUC", code="missing_ruc")
    if client.separate_property and not client.separate_property_data:
        raise BusinessRuleError(
            "Debe indicar los datos de la separación de bienes", code="missing_separate_property_data"
        )


def _ensure_unique_client(client):
    active = Client.objects.filter(is_active=True).exclude(pk=client.pk)
    if client.dni and active.filter(dni=client.dni).exists():
        raise ConflictError(f"Ya existe un cliente con el DNI {client.dni}", code="duplicate_dni")
    if client.ruc and active.filter(ruc=client.ruc).exists():
        raise ConflictError(f"Ya existe un cliente con el RUC {client.ruc}", code="duplicate_ruc")
    if active.filter(phone_number=client.phone_number).exists():
        raise ConflictError(
            f"Ya existe un cliente con el celular {client.phone_number}", code="duplicate_phone"
        )


@transaction.atomic
def create_client(*, acting_user=None, **values):
    client = Client(**_clean_client_values(values))
    _validate_client(client)
    _ensure_unique_client(client)
    client.save()
    AuditLog.record(client, AuditLog.Action.CREATE, acting_user)
    return client


@transaction.atomic
def update_client(client, changes, acting_user=None):
    for field, value in _clean_client_values(changes).items():
        setattr(client, field, value)
    _validate_client(client)
    _ensure_unique_client(client)
    client.save()
    AuditLog.record(client, AuditLog.Action.UPDATE, acting_user)
    return client


def delete_client(client, acting_user=None):
    client.is_active = False
    client.save(update_fields=["is_active", "modified_at"])
    AuditLog.record(client, AuditLog.Action.DELETE, acting_user)
    return client


def activate_client(client, acting_user=None):
    client.is_active = True
    _ensure_unique_client(client)
    client.save(update_fields=["is_active", "modified_at"])
    AuditLog.record(client, AuditLog.Action.UPDATE, acting_user, "Activado")
    return client


def find_client_by_phone(phone):
    phone = normalize_phone(phone)
    if not phone:
        return None
    return Client.objects.filter(is_active=True, phone_number=phone).first()


def find_client_by_document(document):
    document = normalize_document_number(document)
    if not document:
        return None
    return Client.objects.filter(is_active=True).filter(Q(dni=document) | Q(ruc=document)).first()


# ── Leads ─────────────────────────────────────────────────────

def _clean_lead_values(values):
    cleaned = {k: v for k, v in values.items() if k in LEAD_FIELDS}
    if "status" in cleaned and cleaned["status"] not in Lead.Status.values:
        raise BusinessRuleError(f"Estado de lead inválido: {cleaned['status']}", code="invalid_status")
    if "capture_source" in cleaned and cleaned["capture_source"] not in Lead.CaptureSource.values:
        raise BusinessRuleError(
            f"Medio de captación inválido: {cleaned['capture_source']}", code="invalid_capture_source"
        )
    reason = cleaned.get("completion_reason")
    if reason and reason not in Lead.CompletionReason.values:
        raise BusinessRuleError(f"Motivo de cierre inválido: {reason}", code="invalid_completion_reason")
    client = cleaned.get("client")
    if "client" in cleaned and (client is None or not client.is_active):
        raise BusinessRuleError("El cliente no existe o está inactivo", code="client_not_found")
    return cleaned


@transaction.atomic
def create_lead(*, client, capture_source, acting_user=None, **values):
    values = _clean_lead_values({"client": client, "capture_source": capture_source, **values})
    now = timezone.now()

    def build(code):
        return Lead.objects.create(
            code=code,
            entry_date=now,
            expiration_date=now + timedelta(days=settings.LEAD_EXPIRATION_DAYS),
            **values,
        )

    lead = create_with_code(Lead, "LEAD", build)
    AuditLog.record(lead, AuditLog.Action.CREATE, acting_user)
    logger.info("Lead %s creado para cliente %s", lead.code, lead.client_id)
    return lead


@transaction.atomic
def update_lead(lead, changes, acting_user=None):
    changes = _clean_lead_values(changes)
    reason = changes.pop("cancellation_reason", None)
    for field, value in changes.items():
        setattr(lead, field, value)
    if lead.status != Lead.Status.CANCELED:
        lead.cancellation_reason = ""
    elif reason:
        lead.cancellation_reason = reason
    lead.save()
    AuditLog.record(lead, AuditLog.Action.UPDATE, acting_user)
    return lead


def toggle_lead_status(lead, acting_user=None):
    """Alterna Registrado <-> Atendido."""
    if lead.status == Lead.Status.REGISTERED:
        lead.status = Lead.Status.ATTENDED
    else:
        lead.status = Lead.Status.REGISTERED
    lead.save(update_fields=["status", "modified_at"])
    AuditLog.record(lead, AuditLog.Action.UPDATE, acting_user, f"Estado {lead.status}")
    return lead


def delete_lead(lead, acting_user=None):
    lead.is_active = False
    lead.save(update_fields=["is_active", "modified_at"])
    AuditLog.record(lead, AuditLog.Action.DELETE, acting_user)
    return lead


def activate_lead(lead, acting_user=None):
    lead.is_active = True
    lead.save(update_fields=["is_active", "modified_at"])
    AuditLog.record(lead, AuditLog.Action.UPDATE, acting_user, "Activado")
    return lead


@transaction.atomic
def recycle_lead(lead, acting_user=None):
    if lead.status not in Lead.RECYCLABLE_STATUSES:
        raise InvalidTransitionError(
            "Solo se pueden reciclar leads expirados o cancelados", code="lead_not_recyclable"
        )
    lead.recycle(acting_user)
    lead.save()
    AuditLog.record(lead, AuditLog.Action.UPDATE, acting_user, f"Reciclado #{lead.recycle_count}")
    logger.info("Lead %s reciclado (%s)", lead.code, lead.recycle_count)
    return lead


def expire_overdue_leads(now=None):
    """Marca como expirados los leads vencidos que siguen abiertos. Devuelve la cantidad."""
    now = now or timezone.now()
    count = (
        Lead.objects.filter(is_active=True, expiration_date__lt=now)
        .exclude(status__in=Lead.CLOSED_STATUSES)
        .update(status=Lead.Status.EXPIRED, modified_at=now)
    )
    if count:
        logger.info("%s leads marcados como expirados", count)
    return count


def lead_queryset(active_only=True):
    qs = Lead.objects.select_related("client", "project", "assigned_to", "last_recycled_by")
    if active_only:
        qs = qs.filter(is_active=True)
    return qs


# ── Tareas ────────────────────────────────────────────────────

TASK_FIELDS = ("lead", "assigned_to", "description", "scheduled_date", "type")


def _clean_task_values(values):
    cleaned = {k: v for k, v in values.items() if k in TASK_FIELDS}
    if "description" in cleaned:
        cleaned["description"] = (cleaned["description"] or "").strip()
        if not cleaned["description"]:
            raise BusinessRuleError("La descripción es requerida", code="missing_description")
    if "scheduled_date" in cleaned and cleaned["scheduled_date"] is None:
        raise BusinessRuleError("La fecha programada es requerida", code="missing_scheduled_date")
    if "type" in cleaned:
        cleaned["type"] = cleaned["type"] or LeadTask.Type.OTHER
        if cleaned["type"] not in LeadTask.Type.values:
            raise BusinessRuleError(f"Tipo de tarea inválido: {cleaned['type']}", code="invalid_type")
    lead = cleaned.get("lead")
    if "lead" in cleaned and (lead is None or not lead.is_active):
        raise BusinessRuleError("El lead no existe o está inactivo", code="lead_not_found")
    user = cleaned.get("assigned_to")
    if "assigned_to" in cleaned and (user is None or not user.is_active):
        raise BusinessRuleError("El usuario asignado no existe o está inactivo", code="user_not_found")
    return cleaned


@transaction.atomic
def create_task(*, lead, assigned_to, description, scheduled_date, acting_user=None, **values):
    values = _clean_task_values(
        {
            "lead": lead,
            "assigned_to": assigned_to,
            "description": description,
            "scheduled_date": scheduled_date,
            **values,
        }
    )
    task = LeadTask.objects.create(**values)
    AuditLog.record(task, AuditLog.Action.CREATE, acting_user)
    return task


@transaction.atomic
def update_task(task, changes, acting_user=None):
    """
    Actualización parcial. ``completed_date`` marca la tarea como completada;
    ``is_completed=False`` limpia la fecha de cumplimiento.
    """
    completed_date = changes.get("completed_date")
    is_completed = changes.get("is_completed")
    for field, value in _clean_task_values(changes).items():
        setattr(task, field, value)
    if completed_date is not None:
        task.mark_completed(True, completed_date)
    elif is_completed is not None and is_completed != task.is_completed:
        task.mark_completed(is_completed)
    task.save()
    AuditLog.record(task, AuditLog.Action.UPDATE, acting_user)
    return task


def toggle_task_completion(task, acting_user=None):
    task.mark_completed(not task.is_completed)
    task.save(update_fields=["is_completed", "completed_date", "modified_at"])
    AuditLog.record(
        task,
        AuditLog.Action.UPDATE,
        acting_user,
        "Completada" if task.is_completed else "Reabierta",
    )
    return task


def delete_task(task, acting_user=None):
    task.is_active = False
    task.save(update_fields=["is_active", "modified_at"])
    AuditLog.record(task, AuditLog.Action.DELETE, acting_user)
    return task


def task_queryset():
    return LeadTask.objects.filter(is_active=True).select_related("lead__client", "assigned_to")


def filter_tasks(*, date_from, date_to, assigned_to=None, lead=None, task_type=None, is_completed=None):
    qs = task_queryset().filter(scheduled_date__gte=date_from, scheduled_date__lte=date_to)
    if assigned_to is not None:
        qs = qs.filter(assigned_to=assigned_to)
    if lead is not None:
        qs = qs.filter(lead=lead)
    if task_type:
        qs = qs.filter(type=task_type)
    if is_completed is not None:
        qs = qs.filter(is_completed=is_completed)
    return qs


def pending_tasks():
    return task_queryset().filter(is_completed=False)


def completed_tasks():
    return task_queryset().filter(is_completed=True).order_by("-completed_date")


# ── Landing ───────────────────────────────────────────────────

def _find_or_create_landing_client(*, name, phone, document="", email="", acting_user=None):
    """Devuelve ``(client, created)``; el celular identifica al cliente activo."""
    phone = normalize_phone(phone)
    if not phone:
        raise BusinessRuleError("El número de celular es requerido", code="missing_phone")
    client = find_client_by_phone(phone)
    if client is not None:
        return client, False

    name = (name or "").strip()
    values = {"name": name, "phone_number": phone, "email": email or ""}
    kind = document_kind(document)
    if kind == "DNI":
        values.update(dni=normalize_document_number(document), type=Client.Type.NATURAL)
    elif kind == "RUC":
        values.update(
            ruc=normalize_document_number(document),
            type=Client.Type.JURIDICO,
            company_name=name,
        )
    return create_client(acting_user=acting_user, **values), True


@transaction.atomic
def register_landing_contact(*, name, phone, document="", email="", project=None, acting_user=None):
    """
    Registra un contacto de la web: reutiliza el cliente activo con el mismo
    celular o crea uno nuevo, y abre un lead con medio de captación Empresa.
    Devuelve ``(lead, client, client_created)``.
    """
    client, client_created = _find_or_create_landing_client(
        name=name, phone=phone, document=document, email=email, acting_user=acting_user
    )
    lead = create_lead(
        client=client,
        capture_source=Lead.CaptureSource.COMPANY,
        project=project,
        acting_user=acting_user,
    )
    logger.info("Contacto de landing registrado: lead %s (cliente nuevo: %s)", lead.code, client_created)
    return lead, client, client_created


@transaction.atomic
def register_landing_referral(*, referrer, referred, project=None, acting_user=None):
    """
    Registra una recomendación de la web. ``referrer`` y ``referred`` son dicts
    con ``name``, ``phone``, ``document`` y ``email``. El referido siempre abre
    un lead nuevo con medio de captación Fidelizado.
    """
    referrer_client, referrer_created = _find_or_create_landing_client(
        acting_user=acting_user, **referrer
    )
    referred_client, referred_created = _find_or_create_landing_client(
        acting_user=acting_user, **referred
    )
    if referrer_client.pk == referred_client.pk:
        raise BusinessRuleError(
            "El referido no puede ser el mismo cliente que lo recomienda", code="self_referral"
        )
    lead = create_lead(
        client=referred_client,
        capture_source=Lead.CaptureSource.LOYALTY,
        project=project,
        acting_user=acting_user,
    )
    referral = Referral.objects.create(
        referrer_client=referrer_client, referred_lead=lead, project=project
    )
    AuditLog.record(referral, AuditLog.Action.CREATE, acting_user)
    logger.info(
        "Referido registrado: cliente %s recomienda lead %s", referrer_client.pk, lead.code
    )
    return {
        "referral": referral,
        "lead": lead,
        "referrer_created": referrer_created,
        "referred_created": referred_created,
    }


def referral_queryset():
    return Referral.objects.filter(is_active=True).select_related(
        "referrer_client", "referred_lead__client", "project"
    )


def referral_stats(referrer_client=None):
    qs = referral_queryset()
    if referrer_client is not None:
        qs = qs.filter(referrer_client=referrer_client)
    total = qs.count()
    converted = qs.filter(referred_lead__status=Lead.Status.COMPLETED).count()
    return {
        "total": total,
        "converted": converted,
        "pending": qs.filter(
            referred_lead__status__in=(Lead.Status.REGISTERED, Lead.Status.ATTENDED)
        ).count(),
        "in_follow_up": qs.filter(referred_lead__status=Lead.Status.IN_FOLLOW_UP).count(),
        "conversion_rate": round(converted * 100.0 / total, 2) if total else 0.0,
    }
