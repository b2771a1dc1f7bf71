"""
Tests for multi-unit (income property) calculations.
"""

import pytest
from immocalc.calculations.amortization import monthly_payment
from immocalc.calculations.multi import (
    analyze,
    default_financing,
    expense_ratio,
    max_purchase_price_for_cashflow,
    rate_cashflow_per_unit,
    resolve_financing,
    sensitivity_analysis,
    suggest_optimizations,
)
from immocalc.config import EngineSettings
from immocalc.errors import ComputationDegenerate, InvalidInput
from immocalc.models import Financing, MultiScenario


class TestExpenseRatio:
    """Test unit-count expense tiers."""

    @pytest.mark.property
    @pytest.mark.parametrize(
        "units,ratio",
        [(1, 0.30), (2, 0.30), (3, 0.35), (4, 0.35), (5, 0.45), (6, 0.45), (7, 0.50), (24, 0.50)],
    )
    def test_breakpoints(self, units, ratio):
        assert expense_ratio(units) == ratio

    @pytest.mark.parametrize("units", [0, -2, 2.5, "abc", None])
    def test_invalid_units(self, units):
        with pytest.raises(InvalidInput):
            expense_ratio(units)


class TestAnalyze:
    """Test the multi-unit analysis report."""

    def test_operating_expenses_duplex(self, duplex_scenario):
        report = analyze(duplex_scenario)
        assert report.details.expense_ratio == 0.30
        assert report.details.operating_expenses == pytest.approx(10800)
        assert report.details.net_operating_income == pytest.approx(25200)
        assert report.summary.operating_expenses == pytest.approx(10800)

    def test_total_investment_includes_renovation(self):
        report = analyze(
            {"purchasePrice": 400000, "grossAnnualRent": 48000, "units": 4, "renovationCost": 50000}
        )
        assert report.details.total_investment == pytest.approx(450000)
        assert report.details.expense_ratio == 0.35
        assert report.details.loan_amount == pytest.approx(337500)
        assert report.details.down_payment == pytest.approx(112500)

    def test_default_financing(self, duplex_scenario):
        report = analyze(duplex_scenario)
        assert report.details.financing == Financing(
            loan_to_value=0.75, interest_rate_percent=4.5, amortization_years=25
        )
        expected = monthly_payment(225000, 4.5, 25)
        assert report.details.monthly_mortgage_payment == pytest.approx(expected)
        assert report.details.annual_mortgage_payment == pytest.approx(expected * 12)

    def test_cashflow_chain(self, duplex_scenario):
        report = analyze(duplex_scenario)
        d = report.details
        assert d.annual_cashflow == pytest.approx(d.net_operating_income - d.annual_mortgage_payment)
        assert d.monthly_cashflow == pytest.approx(d.annual_cashflow / 12)
        assert d.cashflow_per_unit == pytest.approx(d.monthly_cashflow / 2)

    def test_ratios(self, duplex_scenario):
        report = analyze(duplex_scenario)
        d = report.details
        assert d.cap_rate == pytest.approx(8.4)
        assert d.cash_on_cash == pytest.approx(d.annual_cashflow / 75000 * 100)
        assert d.gross_rent_multiplier == pytest.approx(300000 / 36000)
        assert d.debt_service_coverage == pytest.approx(d.net_operating_income / d.annual_mortgage_payment)
        assert report.summary.cap_rate == "8.40"
        assert report.summary.cash_on_cash == f"{d.cash_on_cash:.2f}"

    def test_viable_verdict(self, duplex_scenario):
        report = analyze(duplex_scenario)
        assert report.summary.is_viable
        assert report.summary.verdict == "viable"
        assert report.summary.rating == "EXCELLENT"
        assert "per door" in report.summary.message

    def test_marginal_verdict(self):
        report = analyze({"purchasePrice": 300000, "grossAnnualRent": 27000, "units": 4})
        assert 0 < report.details.cashflow_per_unit < 75
        assert report.summary.verdict == "marginal"
        assert report.summary.is_viable is False
        assert report.summary.rating == "ACCEPTABLE"

    def test_negative_verdict(self):
        report = analyze({"purchasePrice": 300000, "grossAnnualRent": 20000, "units": 4})
        assert report.details.cashflow_per_unit < 0
        assert report.summary.verdict == "negative"
        assert report.summary.rating == "POOR"

    def test_three_messages_differ(self, duplex_scenario):
        messages = {
            analyze(duplex_scenario).summary.message,
            analyze({"purchasePrice": 300000, "grossAnnualRent": 27000, "units": 4}).summary.message,
            analyze({"purchasePrice": 300000, "grossAnnualRent": 20000, "units": 4}).summary.message,
        }
        assert len(messages) == 3

    def test_viability_threshold_from_settings(self, duplex_scenario):
        settings = EngineSettings(multi_min_cashflow_per_unit=1000)
        report = analyze(duplex_scenario, settings=settings)
        assert report.summary.is_viable is False
        assert report.summary.verdict == "marginal"

    def test_custom_financing(self):
        report = analyze(
            MultiScenario(
                purchase_price=300000,
                gross_annual_rent=36000,
                units=2,
                financing=Financing(loan_to_value=0.5, interest_rate_percent=0, amortization_years=25),
            )
        )
        assert report.details.loan_amount == pytest.approx(150000)
        assert report.details.annual_mortgage_payment == pytest.approx(6000)

    def test_numeric_strings(self):
        report = analyze({"purchasePrice": "300000", "grossAnnualRent": "36000", "units": "3"})
        assert report.details.expense_ratio == 0.35

    def test_summary_contract_uses_camel_case(self, duplex_scenario):
        dumped = analyze(duplex_scenario).model_dump(by_alias=True)
        assert set(dumped) == {"details", "summary"}
        assert isinstance(dumped["summary"]["capRate"], str)
        assert isinstance(dumped["summary"]["cashOnCash"], str)
        assert isinstance(dumped["details"]["capRate"], float)
        assert "cashflowPerUnit" in dumped["summary"]

    @pytest.mark.parametrize("units", [0, -1, 2.5, "two", True, False])
    def test_invalid_units(self, units):
        with pytest.raises(InvalidInput):
            analyze({"purchasePrice": 300000, "grossAnnualRent": 36000, "units": units})

    def test_missing_rent(self):
        with pytest.raises(InvalidInput):
            analyze({"purchasePrice": 300000, "units": 2})

    def test_negative_price(self):
        with pytest.raises(InvalidInput):
            analyze({"purchasePrice": -1, "grossAnnualRent": 36000, "units": 2})

    def test_zero_down_payment_is_degenerate(self):
        with pytest.raises(ComputationDegenerate):
            analyze(
                {
                    "purchasePrice": 300000,
                    "grossAnnualRent": 36000,
                    "units": 2,
                    "financing": {"loanToValue": 1, "interestRatePercent": 4.5, "amortizationYears": 25},
                }
            )

    def test_zero_investment_is_degenerate(self):
        with pytest.raises(ComputationDegenerate):
            analyze({"purchasePrice": 0, "grossAnnualRent": 36000, "units": 2})

    def test_all_cash_purchase(self):
        report = analyze(
            {
                "purchasePrice": 300000,
                "grossAnnualRent": 36000,
                "units": 2,
                "financing": {"loanToValue": 0, "interestRatePercent": 4.5, "amortizationYears": 25},
            }
        )
        assert report.details.annual_mortgage_payment == 0
        assert report.details.debt_service_coverage is None
        assert report.details.cash_on_cash == pytest.approx(report.details.cap_rate)


class TestMultiHelpers:
    """Test rating, defaults and max purchase price."""

    def test_rating_tiers(self):
        assert rate_cashflow_per_unit(120) == "EXCELLENT"
        assert rate_cashflow_per_unit(80) == "GOOD"
        assert rate_cashflow_per_unit(50) == "ACCEPTABLE"
        assert rate_cashflow_per_unit(10) == "POOR"

    def test_default_financing_from_settings(self):
        settings = EngineSettings(default_loan_to_value=0.8, default_interest_rate_percent=6)
        financing = default_financing(settings)
        assert financing.loan_to_value == 0.8
        assert financing.interest_rate_percent == 6
        assert financing.amortization_years == 25

    def test_max_purchase_price_round_trip(self):
        """Buying at the max price leaves exactly the target per door."""
        result = max_purchase_price_for_cashflow(36000, 2, target_cashflow_per_unit=75)
        assert result.is_feasible
        report = analyze(
            {"purchasePrice": result.max_purchase_price, "grossAnnualRent": 36000, "units": 2}
        )
        assert report.details.cashflow_per_unit == pytest.approx(75, abs=1e-6)

    def test_max_purchase_price_with_renovation(self):
        plain = max_purchase_price_for_cashflow(36000, 2)
        with_reno = max_purchase_price_for_cashflow(36000, 2, renovation_cost=20000)
        assert plain.max_purchase_price - with_reno.max_purchase_price == pytest.approx(20000)

    def test_max_purchase_price_infeasible(self):
        result = max_purchase_price_for_cashflow(10000, 4, target_cashflow_per_unit=200)
        assert result.max_annual_mortgage_payment < 0
        assert result.is_feasible is False

    def test_max_purchase_price_without_loan(self):
        with pytest.raises(ComputationDegenerate):
            max_purchase_price_for_cashflow(
                36000, 2, financing={"loanToValue": 0, "interestRatePercent": 4.5, "amortizationYears": 25}
            )


class TestMultiSensitivity:
    """Test multi-unit sensitivity analysis."""

    def test_default_cases(self, duplex_scenario):
        analysis = sensitivity_analysis(duplex_scenario)
        assert analysis.metric_name == "cashflow_per_unit"
        assert len(analysis.cases) == 4
        metrics = [case.metric for case in analysis.cases]
        assert metrics == sorted(metrics, reverse=True)

    def test_rent_drop_lowers_cashflow(self, duplex_scenario):
        analysis = sensitivity_analysis(duplex_scenario)
        rent_down = next(
            case for case in analysis.cases
            if case.variable == "gross_annual_rent" and case.change_percent == -5
        )
        assert rent_down.metric < analysis.base_metric


class TestPartialFinancing:
    """Test filling financing gaps from settings."""

    def test_partial_financing_uses_defaults(self, duplex_scenario):
        report = analyze({**duplex_scenario, "financing": {"loanToValue": 0.8}})
        assert report.details.financing == Financing(
            loan_to_value=0.8, interest_rate_percent=4.5, amortization_years=25
        )
        assert report.details.loan_amount == pytest.approx(240000)

    def test_snake_case_partial_financing(self):
        financing = resolve_financing({"interest_rate_percent": 6})
        assert financing.loan_to_value == 0.75
        assert financing.interest_rate_percent == 6

    def test_defaults_follow_settings(self):
        settings = EngineSettings(default_amortization_years=30)
        financing = resolve_financing({"loanToValue": 0.5}, settings)
        assert financing.amortization_years == 30

    def test_missing_financing(self):
        assert resolve_financing(None) == default_financing()

    def test_partial_financing_is_still_validated(self, duplex_scenario):
        with pytest.raises(InvalidInput):
            analyze({**duplex_scenario, "financing": {"loanToValue": 2}})

    def test_financing_must_be_a_mapping(self):
        with pytest.raises(InvalidInput):
            resolve_financing("75%")

    def test_max_price_accepts_partial_financing(self):
        half = max_purchase_price_for_cashflow(36000, 2, financing={"loanToValue": 0.5})
        default = max_purchase_price_for_cashflow(36000, 2)
        assert half.max_purchase_price == pytest.approx(default.max_purchase_price * 0.75 / 0.5)


class TestSuggestOptimizations:
    """Test improvement suggestions."""

    def test_healthy_deal_has_none(self, duplex_scenario):
        assert suggest_optimizations(duplex_scenario) == ()

    def test_low_rent_and_price(self):
        suggestions = suggest_optimizations(
            {"purchasePrice": 300000, "grossAnnualRent": 27000, "units": 4}
        )
        assert [s.kind for s in suggestions] == ["RENT_INCREASE", "NEGOTIATE_PRICE"]
        assert suggestions[-1].category == "price"
        assert suggestions[-1].description.startswith("Negotiate")

    def test_expenses_and_financing(self):
        suggestions = suggest_optimizations(
            {
                "purchasePrice": 900000,
                "grossAnnualRent": 120000,
                "units": 8,
                "financing": {"loanToValue": 0.6, "interestRatePercent": 6},
            }
        )
        assert [s.kind for s in suggestions] == [
            "EXPENSE_RATIO",
            "HIGH_INTEREST_RATE",
            "HIGH_DOWN_PAYMENT",
        ]
        assert [s.impact for s in suggestions] == ["high", "high", "medium"]

    def test_no_reachable_price(self):
        suggestions = suggest_optimizations(
            {"purchasePrice": 300000, "grossAnnualRent": 5000, "units": 4}
        )
        assert suggestions[-1].kind == "NEGOTIATE_PRICE"
        assert suggestions[-1].description.startswith("No price")
