from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from loans.models import Installment, InstallmentStatus, Loan

from .utils import EMPLOYEE_ID, LOANS_SETTINGS, OTHER_EMPLOYEE_ID


@override_settings(LOANS=LOANS_SETTINGS)
class LoanAPITestCase(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="payroll-admin", password="secret")
        self.client = APIClient()
        self.client.force_authenticate(self.user)

    def create_loan(self, **overrides):
        payload = {
            "employee_id": EMPLOYEE_ID,
            "principal": "100000",
            "currency": "CRC",
            "granted_at": "2024-01-10",
            "schedule": {"mode": "nth", "n": 3, "intervalDays": 14},
        }
        payload.update(overrides)
        return self.client.post(reverse("loan-list"), data=payload, format="json")


class LoanCreateAPITest(LoanAPITestCase):
    def test_create_nth_schedule(self):
        response = self.create_loan()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["status"], "active")
        self.assertEqual(response.data["start_date"], "2024-01-10")
        self.assertFalse(response.data["schedule_mismatch"])
        installments = response.data["installments"]
        self.assertEqual(
            [item["amount"] for item in installments], ["33333.33", "33333.33", "33333.34"]
        )
        self.assertEqual(
            [item["due_date"] for item in installments], ["2024-01-24", "2024-02-07", "2024-02-21"]
        )
        total = sum(Decimal(item["amount"]) for item in installments)
        self.assertEqual(total, Decimal("100000"))

    def test_create_next_payment_from_amount(self):
        response = self.create_loan(
            principal=None,
            amount="50000",
            start_date="01-02-2024",
            schedule={"mode": "next", "interval_days": 14},
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["principal"], "50000.00")
        self.assertEqual(response.data["amount"], "50000.00")
        self.assertEqual(len(response.data["installments"]), 1)
        self.assertEqual(response.data["installments"][0]["due_date"], "2024-02-15")

    def test_custom_schedule_mismatch_is_reported(self):
        response = self.create_loan(
            schedule={
                "mode": "custom",
                "installments": [
                    {"due_date": "2024-02-01", "amount": "30000", "remarks": "first half"},
                    {"due_date": "2024-03-01", "amount": "30000"},
                ],
            }
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["schedule_mismatch"])
        self.assertEqual(response.data["schedule_total"], "60000.00")
        self.assertEqual(response.data["installments"][0]["remarks"], "first half")

    def test_empty_custom_schedule_is_rejected(self):
        response = self.create_loan(schedule={"mode": "custom", "installments": []})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_schedule")
        self.assertIn("schedule.installments", response.data["errors"])
        self.assertFalse(Loan.objects.exists())
        self.assertFalse(Installment.objects.exists())

    def test_zero_principal_is_rejected(self):
        response = self.create_loan(principal="0")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_amount")
        self.assertEqual(list(response.data["errors"]), ["principal"])

    def test_unknown_employee(self):
        response = self.create_loan(employee_id=999)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Loan.objects.exists())

    def test_missing_fields(self):
        response = self.client.post(reverse("loan-list"), data={"currency": "XXX"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid")
        for field in ("employee_id", "currency", "granted_at", "schedule"):
            self.assertIn(field, response.data["errors"])

    def test_requires_authentication(self):
        client = APIClient()
        response = client.get(reverse("loan-list"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class LoanListAPITest(LoanAPITestCase):
    def test_pagination_metadata(self):
        for _ in range(3):
            self.create_loan()
        response = self.client.get(reverse("loan-list"), {"per_page": 2, "page": 2})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["data"]), 1)
        self.assertEqual(
            response.data["meta"],
            {"current_page": 2, "last_page": 2, "per_page": 2, "total": 3},
        )

    def test_filters(self):
        self.create_loan()
        other = self.create_loan(employee_id=OTHER_EMPLOYEE_ID).data
        self.client.post(reverse("loan-close", args=[other["id"]]))

        by_employee = self.client.get(reverse("loan-list"), {"employee_id": OTHER_EMPLOYEE_ID})
        self.assertEqual([row["id"] for row in by_employee.data["data"]], [other["id"]])

        active = self.client.get(reverse("loan-list"), {"status": "active"})
        self.assertEqual(active.data["meta"]["total"], 1)

        bad = self.client.get(reverse("loan-list"), {"status": "open"})
        self.assertEqual(bad.status_code, status.HTTP_400_BAD_REQUEST)


class LoanDetailAPITest(LoanAPITestCase):
    def test_get_update_and_delete(self):
        loan_id = self.create_loan().data["id"]
        url = reverse("loan-detail", args=[loan_id])

        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data["installments"]), 3)

        response = self.client.patch(url, data={"notes": "approved by HR", "status": "closed"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["notes"], "approved by HR")
        self.assertEqual(response.data["status"], "closed")
        self.assertEqual(
            Installment.objects.filter(loan_id=loan_id, status=InstallmentStatus.PENDING).count(), 3
        )

        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Installment.objects.filter(loan_id=loan_id).exists())
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_currency_cannot_change(self):
        loan_id = self.create_loan().data["id"]
        response = self.client.patch(
            reverse("loan-detail", args=[loan_id]), data={"currency": "USD"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "immutable_field")

    def test_missing_loan(self):
        response = self.client.get(reverse("loan-detail", args=[404]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data["code"], "not_found")


class InstallmentAPITest(LoanAPITestCase):
    def installments(self, loan_id):
        return self.client.get(reverse("loan-installments", args=[loan_id])).data

    def act(self, installment_id, **payload):
        return self.client.patch(
            reverse("installment-detail", args=[installment_id]), data=payload, format="json"
        )

    def test_mark_paid_auto_closes_loan(self):
        loan_id = self.create_loan(schedule={"mode": "next"}, principal="50000").data["id"]
        (installment,) = self.installments(loan_id)

        response = self.act(installment["id"], action="mark_paid", source="payroll")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], "paid")
        self.assertEqual(response.data["source"], "payroll")
        self.assertEqual(response.data["loan_status"], "closed")
        self.assertEqual(Loan.objects.get(pk=loan_id).status, "closed")

    def test_skip_then_pay_conflicts(self):
        loan_id = self.create_loan().data["id"]
        installment_id = self.installments(loan_id)[0]["id"]

        self.assertEqual(self.act(installment_id, action="mark_skipped").status_code, status.HTTP_200_OK)
        response = self.act(installment_id, action="mark_paid")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["code"], "invalid_transition")
        self.assertIn("skipped", response.data["message"])
        self.assertEqual(Installment.objects.get(pk=installment_id).status, "skipped")

    def test_reschedule_to_past_date(self):
        loan_id = self.create_loan().data["id"]
        installment_id = self.installments(loan_id)[2]["id"]

        response = self.act(installment_id, action="reschedule", due_date="2020-01-01")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["due_date"], "2020-01-01")
        self.assertEqual(self.installments(loan_id)[0]["id"], installment_id)

    def test_unknown_action(self):
        loan_id = self.create_loan().data["id"]
        installment_id = self.installments(loan_id)[0]["id"]
        response = self.act(installment_id, action="unpay")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["code"], "invalid_action")

    def test_get_installment_and_missing(self):
        loan_id = self.create_loan().data["id"]
        installment_id = self.installments(loan_id)[0]["id"]
        response = self.client.get(reverse("installment-detail", args=[installment_id]))
        self.assertEqual(response.data["loan_id"], loan_id)
        self.assertEqual(
            self.client.get(reverse("installment-detail", args=[999])).status_code,
            status.HTTP_404_NOT_FOUND,
        )
        self.assertEqual(
            self.client.get(reverse("loan-installments", args=[999])).status_code,
            status.HTTP_404_NOT_FOUND,
        )

    def test_due_installments(self):
        loan_id = self.create_loan().data["id"]
        response = self.client.get(reverse("installments-due"), {"run_date": "2024-02-07"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row["loan_id"] for row in response.data], [loan_id, loan_id])
        self.assertEqual([row["due_date"] for row in response.data], ["2024-01-24", "2024-02-07"])
