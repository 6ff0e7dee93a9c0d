"""Integration tests for POA&M generation, status workflow, auto-close and stats."""

import unittest
from datetime import datetime, timedelta, timezone

from bastion.core.enums import Impact, Likelihood, PoamStatus, RiskLevel
from bastion.core.exceptions import (
    EvidenceNotFoundError,
    InvalidInputError,
    InvalidStatusTransitionError,
    PoamItemNotFoundError,
)
from bastion.models import PoamItem
from bastion.models.base import as_utc
from bastion.schemas.poam import PoamItemCreate
from bastion.services import poam
from tests.helpers import OTHER_TENANT, TENANT, finding, ingest, make_engine, make_session

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class _DbTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        self.session = make_session(self.engine)

    def tearDown(self) -> None:
        self.session.close()
        self.engine.dispose()


class TestGenerateFromVulnerabilities(_DbTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.evidence = ingest(
            self.session,
            vulnerabilities=[
                finding("CVE-2024-0001", "Critical", 9.8),
                finding("CVE-2024-0002", "High", 7.5, fixed_version=None),
                finding("CVE-2024-0003", "Medium", 5.0),
                finding("CVE-2024-0004", "Low", 2.0),
            ],
        )

    def test_only_critical_and_high_spawn_items(self) -> None:
        items = poam.generate_from_vulnerabilities(self.session, TENANT, self.evidence.id, now=NOW)
        self.assertEqual(sorted(i.cve_id for i in items), ["CVE-2024-0001", "CVE-2024-0002"])

    def test_item_fields_derived_from_finding(self) -> None:
        items = poam.generate_from_vulnerabilities(self.session, TENANT, self.evidence.id, now=NOW)
        critical = next(i for i in items if i.cve_id == "CVE-2024-0001")
        self.assertEqual(critical.status, PoamStatus.OPEN.value)
        self.assertEqual(critical.title, "CVE-2024-0001 in openssl@1.1.1")
        self.assertEqual(critical.risk_level, RiskLevel.VERY_HIGH.value)
        self.assertEqual(critical.likelihood, Likelihood.HIGH.value)
        self.assertEqual(critical.impact, Impact.HIGH.value)
        self.assertEqual(as_utc(critical.scheduled_completion_date), NOW + timedelta(days=30))
        self.assertEqual(
            critical.remediation_plan,
            "Upgrade openssl from version 1.1.1 to 1.1.1w to remediate CVE-2024-0001.",
        )
        self.assertEqual(len(critical.remediation_steps), 4)
        self.assertEqual(
            [c["control_id"] for c in critical.affected_controls],
            ["RA-5", "SI-2", "CM-2"],
        )
        self.assertEqual(critical.affected_systems, ["payments-api"])
        self.assertEqual(critical.metadata_["evidence_id"], str(self.evidence.id))

    def test_no_fix_version_plan_and_steps(self) -> None:
        items = poam.generate_from_vulnerabilities(self.session, TENANT, self.evidence.id, now=NOW)
        high = next(i for i in items if i.cve_id == "CVE-2024-0002")
        self.assertIn("Monitor vendor advisories", high.remediation_plan)
        self.assertEqual(len(high.remediation_steps), 3)
        self.assertEqual(high.risk_level, RiskLevel.HIGH.value)
        self.assertEqual(as_utc(high.scheduled_completion_date), NOW + timedelta(days=90))

    def test_second_run_creates_nothing(self) -> None:
        first = poam.generate_from_vulnerabilities(self.session, TENANT, self.evidence.id)
        second = poam.generate_from_vulnerabilities(self.session, TENANT, self.evidence.id)
        self.assertEqual(len(first), 2)
        self.assertEqual(second, [])
        self.assertEqual(self.session.query(PoamItem).count(), 2)

    def test_same_cve_twice_in_one_snapshot(self) -> None:
        evidence = ingest(
            self.session,
            vulnerabilities=[
                finding("CVE-2024-0100", "Critical", 9.8, package_name="libssl"),
                finding("CVE-2024-0100", "Critical", 9.8, package_name="libcrypto"),
            ],
        )
        items = poam.generate_from_vulnerabilities(self.session, TENANT, evidence.id)
        self.assertEqual(len(items), 1)

    def test_same_cve_other_tenant_gets_own_item(self) -> None:
        poam.generate_from_vulnerabilities(self.session, TENANT, self.evidence.id)
        other = ingest(
            self.session,
            tenant_id=OTHER_TENANT,
            vulnerabilities=[finding("CVE-2024-0001", "Critical", 9.8)],
        )
        items = poam.generate_from_vulnerabilities(self.session, OTHER_TENANT, other.id)
        self.assertEqual(len(items), 1)

    def test_foreign_evidence_not_found(self) -> None:
        with self.assertRaises(EvidenceNotFoundError):
            poam.generate_from_vulnerabilities(self.session, OTHER_TENANT, self.evidence.id)

    def test_score_only_finding_between_bands_spawns_item(self) -> None:
        evidence = ingest(self.session, vulnerabilities=[finding("CVE-2024-0009", None, 8.995)])
        items = poam.generate_from_vulnerabilities(self.session, TENANT, evidence.id, now=NOW)
        self.assertEqual([i.cve_id for i in items], ["CVE-2024-0009"])


class TestCreatePoamItem(_DbTestCase):
    def _data(self) -> PoamItemCreate:
        return PoamItemCreate(
            tenant_id=TENANT,
            cve_id="CVE-2024-9999",
            title="CVE-2024-9999 in zlib@1.2",
            risk_level=RiskLevel.HIGH,
            likelihood=Likelihood.MEDIUM,
            impact=Impact.HIGH,
        )

    def test_conflicting_open_item_returns_none(self) -> None:
        first = poam.create_poam_item(self.session, self._data(), now=NOW)
        second = poam.create_poam_item(self.session, self._data(), now=NOW)
        self.session.commit()
        self.assertIsNotNone(first)
        self.assertIsNone(second)
        self.assertEqual(self.session.query(PoamItem).count(), 1)

    def test_closed_item_does_not_block_new_one(self) -> None:
        first = poam.create_poam_item(self.session, self._data(), now=NOW)
        self.session.commit()
        poam.update_poam_status(
            self.session, TENANT, first.id, PoamStatus.CLOSED, actor="alice", rationale="fixed"
        )
        second = poam.create_poam_item(self.session, self._data(), now=NOW)
        self.assertIsNotNone(second)


class TestStatusWorkflow(_DbTestCase):
    def setUp(self) -> None:
        super().setUp()
        evidence = ingest(self.session, vulnerabilities=[finding("CVE-2024-0001", "Critical", 9.8)])
        self.item = poam.generate_from_vulnerabilities(self.session, TENANT, evidence.id, now=NOW)[0]

    def test_risk_acceptance_records_approval(self) -> None:
        item = poam.update_poam_status(
            self.session,
            TENANT,
            self.item.id,
            PoamStatus.RISK_ACCEPTED,
            actor="ciso",
            rationale="Compensating control in place",
            now=NOW,
        )
        self.assertEqual(item.status, PoamStatus.RISK_ACCEPTED.value)
        self.assertEqual(item.approved_by, "ciso")
        self.assertEqual(item.deviation_rationale, "Compensating control in place")
        self.assertEqual(as_utc(item.approved_date), NOW)

    def test_closure_records_completion(self) -> None:
        item = poam.update_poam_status(
            self.session,
            TENANT,
            self.item.id,
            "closed",
            actor="alice",
            rationale="Patched",
            now=NOW,
        )
        self.assertEqual(item.closed_by, "alice")
        self.assertEqual(item.closure_rationale, "Patched")
        self.assertEqual(as_utc(item.actual_completion_date), NOW)

    def test_closed_is_terminal(self) -> None:
        poam.update_poam_status(
            self.session, TENANT, self.item.id, PoamStatus.CLOSED, actor="alice", rationale="Patched"
        )
        for status in (PoamStatus.OPEN, PoamStatus.INVESTIGATING, PoamStatus.CLOSED):
            with self.subTest(status=status):
                with self.assertRaises(InvalidStatusTransitionError):
                    poam.update_poam_status(
                        self.session, TENANT, self.item.id, status, actor="bob", rationale="x"
                    )

    def test_intermediate_states_move_between_each_other(self) -> None:
        poam.update_poam_status(self.session, TENANT, self.item.id, PoamStatus.INVESTIGATING)
        item = poam.update_poam_status(
            self.session, TENANT, self.item.id, PoamStatus.REMEDIATION_IN_PROGRESS
        )
        self.assertEqual(item.status, PoamStatus.REMEDIATION_IN_PROGRESS.value)
        with self.assertRaises(InvalidStatusTransitionError):
            poam.update_poam_status(self.session, TENANT, self.item.id, PoamStatus.OPEN)

    def test_acceptance_without_rationale_rejected_and_unchanged(self) -> None:
        with self.assertRaises(InvalidInputError):
            poam.update_poam_status(
                self.session, TENANT, self.item.id, PoamStatus.RISK_ACCEPTED, actor="ciso", rationale="  "
            )
        self.session.refresh(self.item)
        self.assertEqual(self.item.status, PoamStatus.OPEN.value)
        self.assertIsNone(self.item.approved_by)

    def test_other_tenant_cannot_see_item(self) -> None:
        with self.assertRaises(PoamItemNotFoundError):
            poam.get_poam_item(self.session, OTHER_TENANT, self.item.id)


class TestAutoClose(_DbTestCase):
    def test_closes_when_cve_no_longer_reported(self) -> None:
        evidence = ingest(self.session, vulnerabilities=[finding("CVE-2024-0001", "Critical", 9.8)])
        item = poam.generate_from_vulnerabilities(self.session, TENANT, evidence.id)[0]
        # Still reported by the stored scan: nothing closes.
        self.assertEqual(poam.auto_close_if_remediated(self.session, TENANT, "CVE-2024-0001"), [])

        self.session.delete(evidence)
        self.session.commit()
        closed = poam.auto_close_if_remediated(self.session, TENANT, "CVE-2024-0001", now=NOW)

        self.assertEqual([c.id for c in closed], [item.id])
        self.assertEqual(closed[0].status, PoamStatus.CLOSED.value)
        self.assertEqual(closed[0].closed_by, "system")
        self.assertEqual(closed[0].closure_rationale, poam.AUTO_CLOSE_RATIONALE)

    def test_other_tenant_scans_do_not_keep_item_open(self) -> None:
        evidence = ingest(self.session, vulnerabilities=[finding("CVE-2024-0001", "Critical", 9.8)])
        poam.generate_from_vulnerabilities(self.session, TENANT, evidence.id)
        ingest(
            self.session,
            tenant_id=OTHER_TENANT,
            vulnerabilities=[finding("CVE-2024-0001", "Critical", 9.8)],
        )
        self.session.delete(evidence)
        self.session.commit()

        closed = poam.auto_close_if_remediated(self.session, TENANT, "CVE-2024-0001")
        self.assertEqual(len(closed), 1)


class TestListAndStats(_DbTestCase):
    def setUp(self) -> None:
        super().setUp()
        evidence = ingest(
            self.session,
            vulnerabilities=[
                finding("CVE-2024-0001", "Critical", 9.8),
                finding("CVE-2024-0002", "High", 7.5),
                finding("CVE-2024-0003", "Critical", None),
            ],
        )
        self.items = poam.generate_from_vulnerabilities(self.session, TENANT, evidence.id, now=NOW)

    def test_list_orders_by_risk_then_due_date(self) -> None:
        items = poam.list_poam_items(self.session, TENANT)
        self.assertEqual(
            [i.risk_level for i in items],
            [RiskLevel.VERY_HIGH.value, RiskLevel.HIGH.value, RiskLevel.MODERATE.value],
        )

    def test_list_filters(self) -> None:
        items = poam.list_poam_items(self.session, TENANT, risk_level=[RiskLevel.HIGH])
        self.assertEqual([i.cve_id for i in items], ["CVE-2024-0002"])
        self.assertEqual(poam.list_poam_items(self.session, OTHER_TENANT), [])

    def test_overdue_filter(self) -> None:
        later = NOW + timedelta(days=100)
        overdue = poam.list_poam_items(self.session, TENANT, overdue=True, now=later)
        self.assertEqual(sorted(i.cve_id for i in overdue), ["CVE-2024-0001", "CVE-2024-0002"])

    def test_stats(self) -> None:
        stats = poam.get_poam_stats(self.session, TENANT, now=NOW + timedelta(days=25))
        self.assertEqual(stats.total, 3)
        self.assertEqual(stats.by_status[PoamStatus.OPEN.value], 3)
        self.assertEqual(stats.by_status[PoamStatus.CLOSED.value], 0)
        self.assertEqual(stats.by_risk_level[RiskLevel.VERY_HIGH.value], 1)
        self.assertEqual(stats.overdue, 0)
        # Very-high item is due on day 30: within the week and the month.
        self.assertEqual(stats.due_this_week, 1)
        self.assertEqual(stats.due_this_month, 1)

    def test_stats_ignore_closed_items_for_deadlines(self) -> None:
        poam.update_poam_status(
            self.session, TENANT, self.items[0].id, PoamStatus.CLOSED, actor="a", rationale="done"
        )
        stats = poam.get_poam_stats(self.session, TENANT, now=NOW + timedelta(days=400))
        self.assertEqual(stats.overdue, 2)
        self.assertEqual(stats.by_status[PoamStatus.CLOSED.value], 1)


class TestOneMonthAfter(unittest.TestCase):
    def test_clamps_to_month_end(self) -> None:
        value = datetime(2026, 1, 31, tzinfo=timezone.utc)
        self.assertEqual(poam._one_month_after(value), datetime(2026, 2, 28, tzinfo=timezone.utc))

    def test_december_rolls_year(self) -> None:
        value = datetime(2026, 12, 15, tzinfo=timezone.utc)
        self.assertEqual(poam._one_month_after(value), datetime(2027, 1, 15, tzinfo=timezone.utc))


if __name__ == "__main__":
    unittest.main()
