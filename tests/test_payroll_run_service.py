"""Tests for the payroll run orchestrator."""

from datetime import date, time
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from payroll_batch.models import (
    EmployeeYtdSummary,
    LeaveEntry,
    Loan,
    LoanPayment,
    PayrollLineItem,
    PayrollRun,
    PayrollSettingsRecord,
    PublicHoliday,
    SystemSetting,
    VacationEntry,
)
from payroll_batch.services import (
    InvalidTransitionError,
    PayrollRunService,
    PeriodNotFoundError,
    RunNotFoundError,
    RunStatus,
)
from payroll_batch.services.absence_service import AbsenceService
from payroll_batch.services.ytd_service import YtdService
from tests.conftest import PAY_DATE_1, PAY_DATE_2, make_employee, make_entry


def by_name(result):
    return {item.employee_name: item for item in result.line_items}


async def count(session_factory, model):
    async with session_factory() as s:
        return (await s.execute(select(func.count()).select_from(model))).scalar_one()


class TestCalculatePayroll:
    """Test a full payroll calculation."""

    async def test_line_items_for_each_classification(self, session_factory, seeded):
        service = PayrollRunService(session_factory)

        result = await service.calculate_payroll(seeded.period_1_id, PAY_DATE_1, "biweekly")

        assert result.status == RunStatus.COMPLETED
        assert result.total_employees == 3
        assert result.errors == []

        items = by_name(result)
        alice = items["Alice Anders"]
        assert alice.gross_pay == Decimal("2000.00")
        assert alice.social_contribution_employee == Decimal("140.00")
        assert alice.health_benefit_employee == Decimal("70.00")
        assert alice.income_levy == Decimal("0")
        assert alice.net_pay == Decimal("1790.00")

        bob = items["Bob Brown"]
        assert bob.regular_hours == Decimal("80.00")
        assert bob.overtime_hours == Decimal("10.00")
        assert bob.gross_pay == Decimal("1900.00")
        assert bob.loan_deduction == Decimal("200.00")
        assert bob.internal_loan_deduction == Decimal("200.00")
        assert bob.net_pay == Decimal("1500.50")

        carol = items["Carol Chen"]
        assert carol.pay_classification == "shift_differentiated"
        assert carol.hours_worked == Decimal("24.00")
        assert carol.gross_pay == Decimal("920.00")

    async def test_net_pay_identity(self, session_factory, seeded):
        result = await PayrollRunService(session_factory).calculate_payroll(
            seeded.period_1_id, PAY_DATE_1, "biweekly"
        )

        for item in result.line_items:
            assert item.net_pay == (
                item.gross_pay
                - item.social_contribution_employee
                - item.health_benefit_employee
                - item.income_levy
                - item.loan_deduction
            )

    async def test_run_totals_persisted(self, session_factory, seeded):
        service = PayrollRunService(session_factory)
        result = await service.calculate_payroll(seeded.period_1_id, PAY_DATE_1, "biweekly")

        run = await service.get_run(result.run_id)

        assert run.status == "completed"
        assert run.total_employees == 3
        assert run.error_count == 0
        assert run.total_gross == Decimal("4820.00")
        assert run.total_loan_deductions == Decimal("200.00")
        assert run.total_net == sum(i.net_pay for i in result.line_items)

    async def test_unmatched_employee_recorded_as_error(self, session_factory, seeded, add_all):
        await add_all(
            make_entry(seeded.period_1_id, date(2024, 1, 2), code="E999", first_name="Zed", last_name="Quinn", duration="8")
        )

        result = await PayrollRunService(session_factory).calculate_payroll(
            seeded.period_1_id, PAY_DATE_1, "biweekly"
        )

        assert result.status == RunStatus.COMPLETED_WITH_ERRORS
        assert result.total_employees == 3
        (error,) = result.errors
        assert error.employee_name == "Zed Quinn"

        run = await PayrollRunService(session_factory).get_run(result.run_id)
        assert run.error_count == 1
        assert run.errors_json[0]["employee_name"] == "Zed Quinn"

    async def test_malformed_duration_excludes_employee(self, session_factory, seeded, add_all):
        await add_all(make_entry(seeded.period_1_id, date(2024, 1, 13), code="E002", duration="12:99"))

        result = await PayrollRunService(session_factory).calculate_payroll(
            seeded.period_1_id, PAY_DATE_1, "biweekly"
        )

        assert result.status == RunStatus.COMPLETED_WITH_ERRORS
        assert "Bob Brown" not in by_name(result)
        assert result.errors[0].employee_id == seeded.bob.employee_id

    async def test_missing_pay_data_is_an_employee_error(self, session_factory, seeded, add_all):
        dana = make_employee(employee_code="E004", first_name="Dana", last_name="Diaz", hourly_rate=None)
        await add_all(dana, make_entry(seeded.period_1_id, date(2024, 1, 2), code="E004", duration="8"))

        result = await PayrollRunService(session_factory).calculate_payroll(
            seeded.period_1_id, PAY_DATE_1, "biweekly"
        )

        assert result.total_employees == 3
        assert [e.employee_name for e in result.errors] == ["Dana Diaz"]

    async def test_employee_frequency_falls_back_to_default(self, session_factory, seeded, add_all):
        erin = make_employee(
            employee_code="E005",
            first_name="Erin",
            last_name="Evans",
            pay_classification="salaried",
            hourly_rate=None,
            annual_salary=Decimal("60000"),
            pay_frequency=None,
        )
        await add_all(erin, *[
            make_entry(seeded.period_1_id, date(2024, 1, d), code="E005", duration="8")
            for d in (2, 3, 4, 5, 8, 9, 10, 11, 12, 13)
        ])

        result = await PayrollRunService(session_factory).calculate_payroll(
            seeded.period_1_id, PAY_DATE_1, "semimonthly"
        )

        erin_item = by_name(result)["Erin Evans"]
        assert erin_item.pay_frequency == "semimonthly"
        assert erin_item.base_pay == Decimal("2307.69")
        assert erin_item.income_levy > 0
        assert by_name(result)["Alice Anders"].pay_frequency == "biweekly"

    async def test_missing_period_writes_nothing(self, session_factory, seeded):
        with pytest.raises(PeriodNotFoundError) as exc_info:
            await PayrollRunService(session_factory).calculate_payroll(uuid4(), PAY_DATE_1, "biweekly")

        assert "not found" in str(exc_info.value)
        assert await count(session_factory, PayrollRun) == 0

    async def test_persistence_failure_rolls_back_everything(self, session_factory, seeded, monkeypatch):
        async def failing_accumulate(self, item, pay_date):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(YtdService, "accumulate", failing_accumulate)

        with pytest.raises(SQLAlchemyError):
            await PayrollRunService(session_factory).calculate_payroll(
                seeded.period_1_id, PAY_DATE_1, "biweekly"
            )

        assert await count(session_factory, PayrollRun) == 0
        assert await count(session_factory, PayrollLineItem) == 0
        assert await count(session_factory, LoanPayment) == 0
        async with session_factory() as s:
            loan = await s.get(Loan, seeded.bob_loan_id)
            assert loan.remaining_balance == Decimal("300.00")

    async def test_absence_lookup_failure_still_pays_employee(self, session_factory, seeded, monkeypatch):
        async def failing_vacation(self, employee, period_start, period_end):
            raise SQLAlchemyError("vacation table unavailable")

        monkeypatch.setattr(AbsenceService, "vacation_for_period", failing_vacation)

        result = await PayrollRunService(session_factory).calculate_payroll(
            seeded.period_1_id, PAY_DATE_1, "biweekly"
        )

        assert result.status == RunStatus.COMPLETED_WITH_ERRORS
        assert result.total_employees == 3
        assert len(result.errors) == 3
        assert all("vacation" in e.error for e in result.errors)
        assert by_name(result)["Bob Brown"].gross_pay == Decimal("1900.00")


    async def test_failed_absence_query_keeps_run_usable(self, session_factory, seeded, monkeypatch):
        async def broken_vacation(self, employee, period_start, period_end):
            await self.session.execute(text("SELECT hours FROM vacation_archive"))

        savepoints = []
        begin_nested = AsyncSession.begin_nested

        def counting_begin_nested(self):
            savepoints.append(self)
            return begin_nested(self)

        monkeypatch.setattr(AbsenceService, "vacation_for_period", broken_vacation)
        monkeypatch.setattr(AsyncSession, "begin_nested", counting_begin_nested)

        result = await PayrollRunService(session_factory).calculate_payroll(
            seeded.period_1_id, PAY_DATE_1, "biweekly"
        )

        assert result.status == RunStatus.COMPLETED_WITH_ERRORS
        assert len(result.errors) == 3
        # vacation, leave and holiday lookups for each of three employees
        assert len(savepoints) == 9
        assert await count(session_factory, PayrollRun) == 1
        assert await count(session_factory, PayrollLineItem) == 3
        assert by_name(result)["Bob Brown"].loan_deduction == Decimal("200.00")

    async def test_negative_net_pay_is_kept(self, session_factory, seeded, add_all):
        await add_all(
            Loan(
                loan_id=uuid4(),
                employee_id=seeded.bob.employee_id,
                principal=Decimal("5000.00"),
                interest_rate=Decimal("0"),
                total_amount=Decimal("5000.00"),
                installment_amount=Decimal("5000.00"),
                remaining_balance=Decimal("5000.00"),
                start_date=date(2024, 1, 1),
                status="active",
                loan_class="third_party",
                third_party_name="Credit Union",
            )
        )
        service = PayrollRunService(session_factory)

        result = await service.calculate_payroll(seeded.period_1_id, PAY_DATE_1, "biweekly")

        (bob,) = await service.list_line_items(
            run_id=result.run_id, employee_id=seeded.bob.employee_id
        )
        assert bob.loan_deduction == Decimal("5200.00")
        assert bob.third_party_loan_deduction == Decimal("5000.00")
        assert bob.net_pay == Decimal("-3499.50")
        assert bob.net_pay == bob.gross_pay - bob.statutory_deductions - bob.loan_deduction
        assert bob.ytd_net_pay == Decimal("-3499.50")

        run = await service.get_run(result.run_id)
        assert run.total_net == sum(i.net_pay for i in result.line_items)


class TestAbsencesInRun:
    """Test absence and holiday pay flowing into line items."""

    async def test_vacation_leave_and_holiday(self, session_factory, seeded, add_all):
        bob_id = seeded.bob.employee_id
        await add_all(
            VacationEntry(
                vacation_entry_id=uuid4(),
                employee_id=bob_id,
                start_date=date(2023, 12, 28),
                end_date=date(2024, 1, 2),
                hours=Decimal("16"),
                hourly_rate_override=None,
                status="approved",
            ),
            VacationEntry(
                vacation_entry_id=uuid4(),
                employee_id=bob_id,
                start_date=date(2024, 1, 10),
                end_date=date(2024, 1, 10),
                hours=Decimal("8"),
                hourly_rate_override=None,
                status="pending",
            ),
            LeaveEntry(
                leave_entry_id=uuid4(),
                employee_id=bob_id,
                leave_type="bereavement",
                start_date=date(2024, 1, 12),
                end_date=date(2024, 1, 12),
                hours=Decimal("8"),
                hourly_rate_override=None,
                payment_percentage=Decimal("50"),
                status="approved",
            ),
            PublicHoliday(public_holiday_id=uuid4(), holiday_date=date(2024, 1, 1), name="New Year's Day", paid=True),
        )

        result = await PayrollRunService(session_factory).calculate_payroll(
            seeded.period_1_id, PAY_DATE_1, "biweekly"
        )

        bob = by_name(result)["Bob Brown"]
        assert bob.vacation_hours == Decimal("16.00")
        assert bob.vacation_amount == Decimal("320.00")
        assert bob.leave_hours == Decimal("8.00")
        assert bob.leave_amount == Decimal("80.00")
        assert bob.leave_type == "bereavement"
        assert bob.holiday_hours == Decimal("8.00")
        assert bob.holiday_amount == Decimal("160.00")
        assert bob.holiday_names == ["New Year's Day"]
        # 1,900 worked + 320 vacation + 80 leave + 160 holiday
        assert bob.gross_pay == Decimal("2460.00")
        # Absence hours never create overtime
        assert bob.overtime_hours == Decimal("10.00")

    async def test_holiday_pay_can_be_disabled(self, session_factory, seeded, add_all):
        await add_all(
            PublicHoliday(public_holiday_id=uuid4(), holiday_date=date(2024, 1, 1), name="New Year's Day", paid=True),
            SystemSetting(setting_name="paid_public_holidays_enabled", setting_value="false", description=None),
        )

        result = await PayrollRunService(session_factory).calculate_payroll(
            seeded.period_1_id, PAY_DATE_1, "biweekly"
        )

        assert by_name(result)["Bob Brown"].holiday_amount == Decimal("0")

    async def test_stored_settings_are_used(self, session_factory, seeded, add_all):
        await add_all(
            PayrollSettingsRecord(
                payroll_settings_id=uuid4(),
                social_employee_rate=Decimal("5.00"),
                social_employer_rate=Decimal("9.00"),
                social_monthly_cap=Decimal("6500.00"),
                health_employee_rate=Decimal("3.50"),
                health_employer_rate=Decimal("3.50"),
                health_senior_employee_rate=Decimal("2.50"),
                levy_rate=Decimal("2.50"),
                levy_high_rate=Decimal("5.00"),
                levy_threshold=Decimal("5000.00"),
                levy_exemption=Decimal("541.67"),
                retirement_age=65,
                health_senior_age=60,
                health_max_age=70,
                shift_day_weekday_rate=Decimal("30.00"),
                shift_day_weekend_rate=Decimal("40.00"),
                shift_night_rate=Decimal("40.00"),
                shift_day_start=time(7, 0),
                shift_day_end=time(19, 0),
            )
        )

        result = await PayrollRunService(session_factory).calculate_payroll(
            seeded.period_1_id, PAY_DATE_1, "biweekly"
        )

        items = by_name(result)
        assert items["Alice Anders"].social_contribution_employee == Decimal("100.00")
        # 8h weekday day at 30 + 8h weekend day at 40 + 8h night at 40
        assert items["Carol Chen"].gross_pay == Decimal("880.00")


class TestYearToDate:
    """Test YTD accumulation across runs."""

    async def test_second_run_adds_to_first(self, session_factory, seeded):
        service = PayrollRunService(session_factory)
        await service.calculate_payroll(seeded.period_1_id, PAY_DATE_1, "biweekly")

        second = await service.calculate_payroll(seeded.period_2_id, PAY_DATE_2, "biweekly")

        alice = by_name(second)["Alice Anders"]
        assert alice.ytd_gross_pay == Decimal("4000.00")
        assert alice.ytd_net_pay == Decimal("3580.00")
        assert alice.ytd_hours_worked == Decimal("160.00")

        summary = await service.get_ytd_summary(seeded.alice.employee_id, 2024)
        assert summary.ytd_gross_pay == Decimal("4000.00")
        assert summary.last_run_id == second.run_id

    async def test_summary_counts_later_run_calculated_first(self, session_factory, seeded):
        service = PayrollRunService(session_factory)
        later = await service.calculate_payroll(seeded.period_2_id, PAY_DATE_2, "biweekly")

        earlier = await service.calculate_payroll(seeded.period_1_id, PAY_DATE_1, "biweekly")

        # Line item mirrors only count runs paid on or before their own pay date
        assert by_name(later)["Alice Anders"].ytd_gross_pay == Decimal("2000.00")
        assert by_name(earlier)["Alice Anders"].ytd_gross_pay == Decimal("2000.00")

        summary = await service.get_ytd_summary(seeded.alice.employee_id, 2024)
        assert summary.ytd_gross_pay == Decimal("4000.00")
        assert summary.ytd_net_pay == Decimal("3580.00")
        assert summary.ytd_hours_worked == Decimal("160.00")

    async def test_loan_completes_across_runs(self, session_factory, seeded):
        service = PayrollRunService(session_factory)
        await service.calculate_payroll(seeded.period_1_id, PAY_DATE_1, "biweekly")

        second = await service.calculate_payroll(seeded.period_2_id, PAY_DATE_2, "biweekly")

        bob = by_name(second)["Bob Brown"]
        assert bob.loan_deduction == Decimal("100.00")
        assert bob.ytd_loan_deduction == Decimal("300.00")
        async with session_factory() as s:
            loan = await s.get(Loan, seeded.bob_loan_id)
            assert loan.remaining_balance == Decimal("0")
            assert loan.status == "completed"

    async def test_new_year_starts_from_zero(self, session_factory, seeded):
        service = PayrollRunService(session_factory)
        await service.calculate_payroll(seeded.period_1_id, date(2023, 12, 29), "biweekly")

        second = await service.calculate_payroll(seeded.period_2_id, PAY_DATE_2, "biweekly")

        assert by_name(second)["Alice Anders"].ytd_gross_pay == Decimal("2000.00")
        async with session_factory() as s:
            years = (
                await s.execute(
                    select(EmployeeYtdSummary.year)
                    .where(EmployeeYtdSummary.employee_id == seeded.alice.employee_id)
                    .order_by(EmployeeYtdSummary.year)
                )
            ).scalars().all()
        assert years == [2023, 2024]

    async def test_ytd_never_decreases(self, session_factory, seeded):
        service = PayrollRunService(session_factory)
        first = await service.calculate_payroll(seeded.period_1_id, PAY_DATE_1, "biweekly")
        second = await service.calculate_payroll(seeded.period_2_id, PAY_DATE_2, "biweekly")

        before = by_name(first)
        after = by_name(second)
        for name in ("Alice Anders", "Bob Brown"):
            assert after[name].ytd_gross_pay >= before[name].ytd_gross_pay
            assert after[name].ytd_social_contribution_employee >= before[name].ytd_social_contribution_employee


class TestRunQueries:
    """Test finalize and query operations."""

    async def test_finalize_run(self, session_factory, seeded):
        service = PayrollRunService(session_factory)
        result = await service.calculate_payroll(seeded.period_1_id, PAY_DATE_1, "biweekly")

        run = await service.finalize_run(result.run_id, actor="payroll.admin")

        assert run.status == "finalized"
        assert run.finalized_at is not None

    async def test_finalize_twice_rejected(self, session_factory, seeded):
        service = PayrollRunService(session_factory)
        result = await service.calculate_payroll(seeded.period_1_id, PAY_DATE_1, "biweekly")
        await service.finalize_run(result.run_id)

        with pytest.raises(InvalidTransitionError):
            await service.finalize_run(result.run_id)

    async def test_unknown_run(self, session_factory, seeded):
        service = PayrollRunService(session_factory)

        with pytest.raises(RunNotFoundError):
            await service.get_run(uuid4())
        with pytest.raises(RunNotFoundError):
            await service.finalize_run(uuid4())

    async def test_list_runs_and_line_items(self, session_factory, seeded):
        service = PayrollRunService(session_factory)
        first = await service.calculate_payroll(seeded.period_1_id, PAY_DATE_1, "biweekly")
        second = await service.calculate_payroll(seeded.period_2_id, PAY_DATE_2, "biweekly")

        runs = await service.list_runs()
        assert [r.run_id for r in runs] == [second.run_id, first.run_id]
        assert [r.run_id for r in await service.list_runs(period_id=seeded.period_1_id)] == [first.run_id]

        assert len(await service.list_line_items(run_id=first.run_id)) == 3
        alice_items = await service.list_line_items(employee_id=seeded.alice.employee_id)
        assert {i.run_id for i in alice_items} == {first.run_id, second.run_id}

    async def test_ytd_summary_missing(self, session_factory, seeded):
        assert await PayrollRunService(session_factory).get_ytd_summary(seeded.alice.employee_id, 2024) is None
