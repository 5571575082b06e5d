import unittest
from datetime import datetime

from mobilepos import create_app
from mobilepos.config import Config, PricingSettings
from mobilepos.errors import ValidationError, NotFoundError
from mobilepos.extensions import db
from mobilepos.models import Customer, Invoice, EmiPlan
from mobilepos.services import emi_service, invoice_service
from mobilepos.services.emi_service import plan_payment
from mobilepos.time_utils import add_months


class EmiTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False


EMI_TERMS = {"rate_of_interest": 10, "tenure_months": 10, "down_payment": 1000}


class AddMonthsTests(unittest.TestCase):
    def test_clamps_to_month_end(self):
        self.assertEqual(add_months(datetime(2026, 1, 31, 9, 30)), datetime(2026, 2, 28, 9, 30))
        self.assertEqual(add_months(datetime(2024, 1, 31)), datetime(2024, 2, 29))

    def test_rolls_over_year(self):
        self.assertEqual(add_months(datetime(2026, 12, 15)), datetime(2027, 1, 15))
        self.assertEqual(add_months(datetime(2026, 11, 30), 3), datetime(2027, 2, 28))


class PaymentPlanTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app(EmiTestConfig)
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        cls.settings = PricingSettings()
        cls.now = datetime(2026, 1, 31, 10, 0)

    @classmethod
    def tearDownClass(cls):
        cls.ctx.pop()

    def test_emi_schedule_from_terms(self):
        plan = plan_payment(10000, {"mode": "EMI", "emi": EMI_TERMS}, self.settings, self.now)

        self.assertEqual(plan.status, "EMI-Active")
        self.assertEqual(plan.paid_amount, 1000)
        self.assertEqual(plan.emi.monthly_installment, 1000)
        self.assertEqual(plan.emi.total_paid, 1000)
        self.assertEqual(plan.emi.next_due_date, datetime(2026, 2, 28, 10, 0))
        self.assertEqual(len(plan.emi.installments), 1)
        self.assertEqual(plan.emi.installments[0]["note"], "Down Payment")
        self.assertEqual(plan.balance_increase(10000), 9000)

    def test_precomputed_installment_passed_through(self):
        plan = plan_payment(
            10000,
            {"mode": "EMI", "emi": {"monthly_installment": 950, "tenure_months": 12, "down_payment": 500}},
            self.settings,
            self.now,
        )
        self.assertEqual(plan.emi.monthly_installment, 950)
        self.assertEqual(plan.emi.tenure_months, 12)
        self.assertEqual(plan.paid_amount, 500)

    def test_down_payment_capped_at_grand_total(self):
        terms = dict(EMI_TERMS, down_payment=50000)
        plan = plan_payment(10000, {"mode": "EMI", "emi": terms}, self.settings, self.now)
        self.assertEqual(plan.emi.down_payment, 10000)

    def test_emi_mode_without_terms_rejected(self):
        with self.assertRaises(ValidationError):
            plan_payment(10000, {"mode": "EMI"}, self.settings, self.now)

    def test_zero_installment_string_is_not_terms(self):
        with self.assertRaises(ValidationError):
            plan_payment(10000, {"mode": "EMI", "emi": {"monthly_installment": "0"}}, self.settings, self.now)

    def test_zero_installment_string_falls_back_to_terms(self):
        terms = dict(EMI_TERMS, monthly_installment="0")
        plan = plan_payment(10000, {"mode": "EMI", "emi": terms}, self.settings, self.now)
        self.assertEqual(plan.emi.monthly_installment, 1000)
        self.assertEqual(plan.emi.tenure_months, 10)

    def test_mixed_with_terms_activates_emi(self):
        plan = plan_payment(10000, {"mode": "Mixed", "emi": EMI_TERMS}, self.settings, self.now)
        self.assertEqual(plan.status, "EMI-Active")
        self.assertEqual(plan.emi.installments[0]["payment_mode"], "Mixed")

    def test_mixed_without_terms_is_plain_payment(self):
        plan = plan_payment(
            10000,
            {
                "mode": "Mixed",
                "paid_amount": 10000,
                "mixed_payments": [{"mode": "Cash", "amount": 4000}, {"mode": "UPI", "amount": 6000}],
            },
            self.settings,
            self.now,
        )
        self.assertEqual(plan.status, "Paid")
        self.assertIsNone(plan.emi)
        self.assertEqual(plan.mixed_payments, [("Cash", 4000), ("UPI", 6000)])

    def test_mixed_mismatch_is_a_warning(self):
        with self.assertLogs(self.app.logger, level="WARNING") as logs:
            plan = plan_payment(
                10000,
                {"mode": "Mixed", "paid_amount": 10000, "mixed_payments": [{"mode": "Cash", "amount": 9000}]},
                self.settings,
                self.now,
            )
        self.assertEqual(plan.status, "Paid")
        self.assertIn("Mixed payment sum", logs.output[0])

    def test_mixed_within_tolerance_is_silent(self):
        with self.assertNoLogs(self.app.logger, level="WARNING"):
            plan_payment(
                10000,
                {"mode": "Mixed", "paid_amount": 10000, "mixed_payments": [{"mode": "Card", "amount": 9999}]},
                self.settings,
                self.now,
            )

    def test_mixed_tender_must_be_known(self):
        with self.assertRaises(ValidationError):
            plan_payment(
                100,
                {"mode": "Mixed", "mixed_payments": [{"mode": "Cheque", "amount": 100}]},
                self.settings,
                self.now,
            )

    def test_partial_and_pending_carry_balance(self):
        partial = plan_payment(10000, {"mode": "Cash", "status": "Partial", "paid_amount": 4000}, self.settings, self.now)
        pending = plan_payment(10000, {"mode": "UPI", "status": "Pending"}, self.settings, self.now)

        self.assertEqual(partial.paid_amount, 4000)
        self.assertEqual(partial.balance_increase(10000), 6000)
        self.assertEqual(pending.paid_amount, 0)
        self.assertEqual(pending.balance_increase(10000), 10000)

    def test_paid_status_settles_in_full(self):
        plan = plan_payment(10000, {"mode": "Card", "paid_amount": 200}, self.settings, self.now)
        self.assertEqual(plan.status, "Paid")
        self.assertEqual(plan.paid_amount, 10000)
        self.assertEqual(plan.balance_increase(10000), 0)

    def test_terminal_status_not_accepted_on_create(self):
        for status in ("EMI-Completed", "Cancelled", "Refunded"):
            with self.assertRaises(ValidationError):
                plan_payment(10000, {"mode": "Cash", "status": status}, self.settings, self.now)

    def test_unknown_mode_rejected(self):
        with self.assertRaises(ValidationError):
            plan_payment(10000, {"mode": "Barter"}, self.settings, self.now)


class InstallmentTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app(EmiTestConfig)
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        invoice = invoice_service.create_invoice(
            {"name": "Asha", "mobile": "9000000001"},
            [{"name": "Refurbished Pixel 6", "price": 10000}],
            payment={"mode": "EMI", "emi": EMI_TERMS},
            created_by_user_id=3,
        )
        self.invoice_id = invoice.id
        self.customer_id = invoice.customer_id

    def _pay(self, amount=1000, **kwargs):
        return emi_service.pay_emi_installment(self.invoice_id, amount, **kwargs)

    def test_new_emi_invoice_state(self):
        invoice = db.session.get(Invoice, self.invoice_id)
        self.assertEqual(invoice.status, "EMI-Active")
        self.assertEqual(invoice.paid_amount, 1000)
        self.assertEqual(invoice.emi_plan.total_paid, 1000)
        self.assertEqual(invoice.emi_plan.installments[0].recorded_by_user_id, 3)
        self.assertEqual(db.session.get(Customer, self.customer_id).outstanding_balance, 9000)

    def test_completes_once_interest_is_covered(self):
        for _ in range(9):
            invoice = self._pay()
        self.assertEqual(invoice.status, "EMI-Active")
        self.assertEqual(invoice.emi_plan.total_paid, 10000)

        invoice = self._pay()
        self.assertEqual(invoice.status, "EMI-Completed")
        self.assertEqual(invoice.emi_plan.total_paid, 11000)
        self.assertEqual(len(invoice.emi_plan.installments), 11)

    def test_total_paid_matches_ledger(self):
        self._pay(1500, payment_mode="UPI", note="June")
        self._pay(700)
        plan = db.session.query(EmiPlan).filter_by(invoice_id=self.invoice_id).one()
        self.assertEqual(plan.total_paid, sum(i.amount for i in plan.installments))
        self.assertEqual(plan.installments[-2].note, "June")
        self.assertEqual(plan.installments[-2].payment_mode, "UPI")

    def test_due_date_moves_from_previous_due_date(self):
        plan = db.session.query(EmiPlan).filter_by(invoice_id=self.invoice_id).one()
        first_due = plan.next_due_date

        invoice = self._pay()
        self.assertEqual(invoice.emi_plan.next_due_date, add_months(first_due, 1))
        invoice = self._pay()
        self.assertEqual(invoice.emi_plan.next_due_date, add_months(add_months(first_due, 1), 1))

    def test_customer_balance_floored_at_zero(self):
        for _ in range(10):
            self._pay()
        self.assertEqual(db.session.get(Customer, self.customer_id).outstanding_balance, 0)

    def test_completed_plan_rejects_payment(self):
        self._pay(10000)
        with self.assertRaises(ValidationError):
            self._pay()

    def test_cancelled_invoice_rejects_payment(self):
        invoice = db.session.get(Invoice, self.invoice_id)
        invoice.status = "Cancelled"
        db.session.commit()
        with self.assertRaises(ValidationError):
            self._pay()

    def test_non_positive_amount_rejected(self):
        with self.assertRaises(ValidationError):
            self._pay(0)

    def test_unknown_invoice(self):
        with self.assertRaises(NotFoundError):
            emi_service.pay_emi_installment(99999, 1000)

    def test_invoice_without_plan(self):
        cash = invoice_service.create_invoice(
            {"name": "Asha", "mobile": "9000000001"},
            [{"name": "Tempered glass", "price": 199}],
        )
        with self.assertRaises(NotFoundError):
            emi_service.pay_emi_installment(cash.id, 100)

    def test_active_plans_listing(self):
        rows = emi_service.list_active_emi_plans()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["remaining"], 10000)
        self.assertEqual(rows[0]["paid_months"], 0)

        self._pay(10000)
        self.assertEqual(emi_service.list_active_emi_plans(), [])

    def test_due_window(self):
        self.assertEqual(emi_service.plans_due_within(0), [])
        self.assertEqual(len(emi_service.plans_due_within(40)), 1)


if __name__ == "__main__":
    unittest.main()
