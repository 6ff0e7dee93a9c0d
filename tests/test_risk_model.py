"""Unit tests for bastion.services.risk_model: likelihood bands, impact mapping, matrix and due dates."""

import unittest
from datetime import datetime, timedelta, timezone

from bastion.core.enums import Impact, Likelihood, RiskLevel, Severity
from bastion.services.risk_model import (
    DUE_DATE_DAYS,
    RISK_MATRIX,
    classify_risk,
    due_date,
    impact_for_severity,
    likelihood_for_cvss,
)


class TestLikelihoodBands(unittest.TestCase):
    """CVSS >= 9.0 high, >= 7.0 medium, otherwise low."""

    def test_boundaries(self) -> None:
        self.assertEqual(likelihood_for_cvss(9.0), Likelihood.HIGH)
        self.assertEqual(likelihood_for_cvss(8.99), Likelihood.MEDIUM)
        self.assertEqual(likelihood_for_cvss(7.0), Likelihood.MEDIUM)
        self.assertEqual(likelihood_for_cvss(6.9), Likelihood.LOW)

    def test_missing_score_is_low(self) -> None:
        self.assertEqual(likelihood_for_cvss(None), Likelihood.LOW)
        self.assertEqual(likelihood_for_cvss(0.0), Likelihood.LOW)


class TestImpactMapping(unittest.TestCase):
    def test_critical_and_high_are_high_impact(self) -> None:
        self.assertEqual(impact_for_severity(Severity.CRITICAL), Impact.HIGH)
        self.assertEqual(impact_for_severity("High"), Impact.HIGH)

    def test_medium_is_medium_impact(self) -> None:
        self.assertEqual(impact_for_severity("Medium"), Impact.MEDIUM)

    def test_everything_else_is_low_impact(self) -> None:
        for severity in ("Low", "Negligible", "Unknown", None, "bogus"):
            with self.subTest(severity=severity):
                self.assertEqual(impact_for_severity(severity), Impact.LOW)


class TestClassifyRisk(unittest.TestCase):
    def test_critical_high_score_is_very_high(self) -> None:
        risk = classify_risk(9.8, Severity.CRITICAL)
        self.assertEqual(risk.likelihood, Likelihood.HIGH)
        self.assertEqual(risk.impact, Impact.HIGH)
        self.assertEqual(risk.risk_level, RiskLevel.VERY_HIGH)

    def test_high_medium_score_is_high(self) -> None:
        self.assertEqual(classify_risk(7.5, "High").risk_level, RiskLevel.HIGH)

    def test_critical_without_score_is_moderate(self) -> None:
        risk = classify_risk(None, "Critical")
        self.assertEqual(risk.likelihood, Likelihood.LOW)
        self.assertEqual(risk.risk_level, RiskLevel.MODERATE)

    def test_medium_score_six_is_low(self) -> None:
        risk = classify_risk(6.0, "Medium")
        self.assertEqual(
            (risk.likelihood, risk.impact, risk.risk_level),
            (Likelihood.LOW, Impact.MEDIUM, RiskLevel.LOW),
        )

    def test_matrix_covers_every_combination(self) -> None:
        for likelihood in Likelihood:
            for impact in Impact:
                self.assertIn((likelihood, impact), RISK_MATRIX)


class TestDueDate(unittest.TestCase):
    def test_windows_per_risk_level(self) -> None:
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        expected = {
            RiskLevel.VERY_HIGH: 30,
            RiskLevel.HIGH: 90,
            RiskLevel.MODERATE: 180,
            RiskLevel.LOW: 365,
        }
        self.assertEqual(DUE_DATE_DAYS, expected)
        for level, days in expected.items():
            with self.subTest(level=level):
                self.assertEqual(due_date(level, now=now), now + timedelta(days=days))

    def test_accepts_stored_string(self) -> None:
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        self.assertEqual(due_date("very-high", now=now), now + timedelta(days=30))


if __name__ == "__main__":
    unittest.main()
