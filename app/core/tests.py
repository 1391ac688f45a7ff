from decimal import Decimal
from unittest import mock

from django.http import Http404
from django.test import RequestFactory, SimpleTestCase
from django.utils import timezone

from core.api import json_api, read_json, to_datetime, to_decimal
from core.errors import BusinessRuleError, ConflictError
from core.normalization import document_kind, normalize_phone
from core.pagination import PageParams, paginate
from core.records import PaymentHistoryEntry, parse_records
from core.sequences import create_with_code, next_code
from inventory.models import Project
from leads.models import Lead
from tests.base import BaseAppTestCase
from tests.factories import Factory


def _names(result):
    return [item["name"] for item in result["data"]]


class PaginationTests(BaseAppTestCase):
    def setUp(self):
        for n in range(1, 8):
            Factory.project(name=f"P{n:02d}", location="Lima")
        self.qs = Project.objects.all()

    def _page(self, **query):
        request = RequestFactory().get("/", query)
        return paginate(
            self.qs,
            PageParams.from_request(request),
            lambda p: {"id": p.pk, "name": p.name},
            search_fields=("name",),
            order_fields={"name": "name"},
        )

    def test_page_size_is_clamped(self):
        request = RequestFactory().get("/", {"page": "0", "pageSize": "500"})
        params = PageParams.from_request(request)
        self.assertEqual(params.page, 1)
        self.assertEqual(params.page_size, 100)
        self.assertEqual(PageParams.from_request(RequestFactory().get("/", {"pageSize": "-3"})).page_size, 1)

    def test_meta_and_ordering(self):
        result = self._page(pageSize=3, page=2, orderBy="name")
        self.assertEqual(_names(result), ["P04", "P05", "P06"])
        meta = result["meta"]
        self.assertEqual(meta["total"], 7)
        self.assertEqual(meta["totalPages"], 3)
        self.assertTrue(meta["hasNext"])
        self.assertTrue(meta["hasPrevious"])
        self.assertEqual((meta["startIndex"], meta["endIndex"]), (4, 6))

    def test_preselected_is_first_on_page_one_and_never_repeats(self):
        target = Project.objects.get(name="P05")
        seen = []
        for page in (1, 2, 3):
            result = self._page(pageSize=3, page=page, orderBy="name", preselectedId=target.pk)
            seen.extend(_names(result))
            if page == 1:
                self.assertEqual(_names(result)[0], "P05")
            else:
                self.assertNotIn("P05", _names(result))
        self.assertEqual(sorted(seen), [f"P{n:02d}" for n in range(1, 8)])

    def test_search_filters_before_counting(self):
        result = self._page(search="p0")
        self.assertEqual(result["meta"]["total"], 7)
        result = self._page(search="P07")
        self.assertEqual(_names(result), ["P07"])


class SequenceTests(BaseAppTestCase):
    def test_next_code_follows_highest_sequence_of_the_year(self):
        Factory.lead(code="LEAD-2030-00007")
        Factory.lead(code="LEAD-2029-00099")
        self.assertEqual(next_code(Lead, "LEAD", year=2030), "LEAD-2030-00008")
        self.assertEqual(next_code(Lead, "LEAD", year=2031), "LEAD-2031-00001")

    def test_create_with_code_retries_when_code_is_taken(self):
        client = Factory.client()
        Factory.lead(client=client, code="LEAD-2030-00001")
        stale = ["LEAD-2030-00001", "LEAD-2030-00002"]

        # el primer cálculo llega tarde: otra petición ya usó el código
        with mock.patch("core.sequences.next_code", side_effect=stale):
            lead = create_with_code(Lead, "LEAD", lambda code: Factory.lead(client=client, code=code))

        self.assertEqual(lead.code, "LEAD-2030-00002")
        self.assertEqual(Lead.objects.filter(code__startswith="LEAD-2030-").count(), 2)


class ApiHelpersTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def test_business_errors_become_json(self):
        @json_api
        def view(request):
            raise ConflictError("Duplicado", code="duplicate")

        response = view(self.factory.get("/api/x"))
        self.assertEqual(response.status_code, 409)
        self.assertJSONEqual(response.content, {"error": "Duplicado", "code": "duplicate"})

    def test_not_found_and_unexpected_errors(self):
        @json_api
        def missing(request):
            raise Http404

        @json_api
        def broken(request):
            raise RuntimeError("boom")

        self.assertEqual(missing(self.factory.get("/api/x")).status_code, 404)
        with self.assertLogs("core.api", level="ERROR"):
            response = broken(self.factory.get("/api/x"))
        self.assertEqual(response.status_code, 500)
        self.assertJSONEqual(response.content, {"error": "Error interno del servidor", "code": "server_error"})

    def test_invalid_json_body(self):
        request = self.factory.post("/api/x", data="{nope", content_type="application/json")
        with self.assertRaises(BusinessRuleError) as ctx:
            read_json(request)
        self.assertEqual(ctx.exception.code, "invalid_json")

    def test_non_finite_decimals_are_rejected(self):
        self.assertEqual(to_decimal("12.50", "amount"), Decimal("12.50"))
        for raw in ("NaN", "Infinity", "-inf", float("nan")):
            with self.assertRaises(BusinessRuleError) as ctx:
                to_decimal(raw, "amount")
            self.assertEqual(ctx.exception.code, "invalid_amount")

    def test_datetime_accepts_plain_dates_and_rejects_garbage(self):
        midnight = to_datetime("2026-05-04", "scheduledDate")
        self.assertTrue(timezone.is_aware(midnight))
        self.assertEqual(timezone.localtime(midnight).hour, 0)
        stamped = to_datetime("2026-05-04T09:15:00+00:00", "scheduledDate")
        self.assertEqual(stamped.utcoffset().total_seconds(), 0)
        self.assertIsNone(to_datetime("", "scheduledDate"))
        for raw in ("ayer", "2026-13-40"):
            with self.assertRaises(BusinessRuleError) as ctx:
                to_datetime(raw, "scheduledDate")
            self.assertEqual(ctx.exception.code, "invalid_scheduledDate")


class NormalizationTests(SimpleTestCase):
    def test_document_kind_and_phone(self):
        self.assertEqual(document_kind("4567-8901"), "DNI")
        self.assertEqual(document_kind("20123456789"), "RUC")
        self.assertIsNone(document_kind("123"))
        self.assertEqual(normalize_phone(" +51 (987) 654 321 "), "51987654321")

    def test_payment_history_records_are_normalized(self):
        [entry] = parse_records(
            [{"date": "2025-03-01", "amount": 150, "bankName": "BCP", "status": "pending"}],
            PaymentHistoryEntry,
        )
        self.assertEqual(entry["amount"], str(Decimal("150")))
        self.assertEqual(entry["bank_name"], "BCP")
        self.assertEqual(entry["status"], "PENDING")
        self.assertTrue(entry["id"])

    def test_payment_history_rejects_non_finite_amounts(self):
        with self.assertRaises(BusinessRuleError):
            parse_records([{"date": "2025-03-01", "amount": "Infinity"}], PaymentHistoryEntry)
