from datetime import timedelta
from decimal import Decimal
from itertools import count

from django.utils import timezone

from finance.models import Payment, PaymentAllocation, PaymentTransaction
from inventory.models import Block, Lot, LotStatus, Project
from leads.models import Client, Lead, LeadTask, Referral
from sales.models import Quotation, Reservation
from users.models import RoleCode, User


class Factory:
    _seq = count(1)

    @classmethod
    def _n(cls):
        return next(cls._seq)

    @classmethod
    def user(cls, *, role=RoleCode.ADMIN, password="pass1234", **kwargs):
        n = cls._n()
        defaults = {
            "username": f"user{n}",
            "email": f"user{n}@example.com",
            "is_active": True,
            "role": role,
        }
        defaults.update(kwargs)
        return User.objects.create_user(password=password, **defaults)

    @classmethod
    def project(cls, **kwargs):
        n = cls._n()
        defaults = {
            "name": f"Proyecto {n}",
            "location": "Lima",
            "currency": "PEN",
        }
        defaults.update(kwargs)
        return Project.objects.create(**defaults)

    @classmethod
    def block(cls, *, project=None, **kwargs):
        n = cls._n()
        defaults = {
            "project": project or cls.project(),
            "name": f"Bloque {n}",
        }
        defaults.update(kwargs)
        return Block.objects.create(**defaults)

    @classmethod
    def lot(cls, *, block=None, status=LotStatus.AVAILABLE, **kwargs):
        n = cls._n()
        defaults = {
            "block": block or cls.block(),
            "lot_number": f"L-{n}",
            "area": Decimal("120.00"),
            "price": Decimal("50000.00"),
            "status": status,
        }
        defaults.update(kwargs)
        return Lot.objects.create(**defaults)

    @classmethod
    def client(cls, **kwargs):
        n = cls._n()
        defaults = {
            "name": f"Cliente {n}",
            "phone_number": f"9{n:08d}",
            "type": Client.Type.NATURAL,
        }
        defaults.update(kwargs)
        return Client.objects.create(**defaults)

    @classmethod
    def lead(cls, *, client=None, **kwargs):
        n = cls._n()
        now = timezone.now()
        defaults = {
            "code": f"LEAD-TEST-{n:05d}",
            "client": client or cls.client(),
            "capture_source": Lead.CaptureSource.COMPANY,
            "entry_date": now,
            "expiration_date": now + timedelta(days=7),
        }
        defaults.update(kwargs)
        return Lead.objects.create(**defaults)

    @classmethod
    def task(cls, *, lead=None, assigned_to=None, **kwargs):
        defaults = {
            "lead": lead or cls.lead(),
            "assigned_to": assigned_to or cls.user(role=RoleCode.SALES_ADVISOR),
            "description": "Llamar al cliente",
            "scheduled_date": timezone.now() + timedelta(days=1),
        }
        defaults.update(kwargs)
        return LeadTask.objects.create(**defaults)

    @classmethod
    def referral(cls, *, referrer_client=None, referred_lead=None, **kwargs):
        defaults = {
            "referrer_client": referrer_client or cls.client(),
            "referred_lead": referred_lead or cls.lead(capture_source=Lead.CaptureSource.LOYALTY),
        }
        defaults.update(kwargs)
        return Referral.objects.create(**defaults)

    @classmethod
    def quotation(cls, *, lead=None, lot=None, advisor=None, **kwargs):
        n = cls._n()
        lot = lot or cls.lot(status=LotStatus.QUOTED)
        today = timezone.localdate()
        defaults = {
            "code": f"COT-TEST-{n:05d}",
            "lead": lead or cls.lead(),
            "lot": lot,
            "advisor": advisor or cls.user(role=RoleCode.SALES_ADVISOR),
            "total_price": lot.price,
            "discount": Decimal("0"),
            "down_payment": Decimal("10"),
            "months_financed": 3,
            "area_at_quotation": lot.area,
            "price_per_m2_at_quotation": lot.price_per_square_meter,
            "project_name": lot.block.project.name,
            "block_name": lot.block.name,
            "lot_number": lot.lot_number,
            "currency": "PEN",
            "quotation_date": today,
        }
        defaults.update(kwargs)
        quotation = Quotation(**defaults)
        quotation.recalculate()
        quotation.reset_validity()
        quotation.save()
        return quotation

    @classmethod
    def reservation(cls, *, quotation=None, client=None, **kwargs):
        quotation = quotation or cls.quotation(status=Quotation.Status.ACCEPTED)
        defaults = {
            "quotation": quotation,
            "client": client or quotation.lead.client,
            "amount_paid": Decimal("1000.00"),
            "total_amount_required": Decimal("5000.00"),
            "remaining_amount": Decimal("4000.00"),
            "expires_at": timezone.now() + timedelta(days=7),
        }
        defaults.update(kwargs)
        return Reservation.objects.create(**defaults)

    @classmethod
    def payment(cls, *, reservation=None, **kwargs):
        defaults = {
            "reservation": reservation or cls.reservation(),
            "due_date": timezone.localdate(),
            "amount_due": Decimal("1000.00"),
        }
        defaults.update(kwargs)
        return Payment.objects.create(**defaults)

    @classmethod
    def transaction(cls, *, payments=(), amount_paid=None, **kwargs):
        """Transacción con asignaciones directas ``[(payment, monto), ...]``."""
        total = sum((Decimal(str(amount)) for _, amount in payments), Decimal("0"))
        defaults = {
            "amount_paid": amount_paid if amount_paid is not None else total,
            "reservation": payments[0][0].reservation if payments else None,
        }
        defaults.update(kwargs)
        txn = PaymentTransaction.objects.create(**defaults)
        for payment, amount in payments:
            PaymentAllocation.objects.create(transaction=txn, payment=payment, amount=Decimal(str(amount)))
        return txn
