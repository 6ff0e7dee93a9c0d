"""Unit tests for bastion.services.normalize: severity aliases, CVSS fallback, id casing."""

import unittest

from bastion.core.enums import Severity
from bastion.services.normalize import normalize_severity, normalize_vulnerability_id


class TestNormalizeSeverity(unittest.TestCase):
    def test_aliases_and_case(self) -> None:
        cases = {
            "CRITICAL": Severity.CRITICAL,
            "crit": Severity.CRITICAL,
            "Important": Severity.HIGH,
            "moderate": Severity.MEDIUM,
            " med ": Severity.MEDIUM,
            "minor": Severity.LOW,
            "informational": Severity.NEGLIGIBLE,
        }
        for raw, expected in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(normalize_severity(raw), expected)

    def test_alias_wins_over_cvss(self) -> None:
        self.assertEqual(normalize_severity("low", 9.8), Severity.LOW)

    def test_missing_severity_falls_back_to_cvss(self) -> None:
        self.assertEqual(normalize_severity(None, 9.1), Severity.CRITICAL)
        self.assertEqual(normalize_severity("", 7.2), Severity.HIGH)
        self.assertEqual(normalize_severity(None, 5.0), Severity.MEDIUM)
        self.assertEqual(normalize_severity(None, 0.0), Severity.NEGLIGIBLE)

    def test_scores_between_band_edges(self) -> None:
        self.assertEqual(normalize_severity(None, 8.995), Severity.HIGH)
        self.assertEqual(normalize_severity(None, 6.995), Severity.MEDIUM)
        self.assertEqual(normalize_severity(None, 3.995), Severity.LOW)
        self.assertEqual(normalize_severity(None, 0.05), Severity.LOW)
        self.assertEqual(normalize_severity(None, 9.0), Severity.CRITICAL)
        self.assertEqual(normalize_severity(None, 10.0), Severity.CRITICAL)

    def test_unknown_and_unrecognized_fall_back_to_cvss(self) -> None:
        self.assertEqual(normalize_severity("Unknown", 8.1), Severity.HIGH)
        self.assertEqual(normalize_severity("sev-1", 3.0), Severity.LOW)

    def test_nothing_usable_is_unknown(self) -> None:
        self.assertEqual(normalize_severity(None), Severity.UNKNOWN)
        self.assertEqual(normalize_severity("whatever"), Severity.UNKNOWN)


class TestNormalizeVulnerabilityId(unittest.TestCase):
    def test_cve_upper_cased(self) -> None:
        self.assertEqual(normalize_vulnerability_id(" cve-2024-12345 "), "CVE-2024-12345")

    def test_ghsa_prefix_upper_body_lower(self) -> None:
        self.assertEqual(
            normalize_vulnerability_id("ghsa-ABCD-1234-EFGH"),
            "GHSA-abcd-1234-efgh",
        )

    def test_other_ids_kept(self) -> None:
        self.assertEqual(normalize_vulnerability_id("OSV-2024-77"), "OSV-2024-77")


if __name__ == "__main__":
    unittest.main()
