"""HTTP-level tests: tenant header, error mapping and the main evidence → POA&M → incident flow."""

import unittest
import uuid

from fastapi.testclient import TestClient

from bastion.core.database import get_db
from bastion.main import app
from tests.helpers import make_engine, make_session

HEADERS = {"X-Tenant-ID": "tenant-a"}

EVIDENCE_BODY = {
    "project_name": "payments-api",
    "build_id": "build-42",
    "image_digest": "sha256:abc123",
    "image_name": "evil.io/acme/payments-api:1.0",
    "packages": [{"name": "openssl", "version": "1.1.1", "purl": "pkg:generic/openssl@1.1.1"}],
    "vulnerabilities": [
        {
            "cve_id": "cve-2024-0001",
            "severity": "CRIT",
            "cvss_score": 9.8,
            "package_name": "openssl",
            "package_version": "1.1.1",
            "fixed_version": "1.1.1w",
        },
        {"cve_id": "CVE-2024-0002", "cvss_score": 7.4, "package_name": "zlib"},
    ],
}


class _ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()
        self.session = make_session(self.engine)

        def override_get_db():
            yield self.session

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.session.close()
        self.engine.dispose()

    def _upload(self, headers: dict | None = None) -> dict:
        response = self.client.post("/api/v1/evidence", json=EVIDENCE_BODY, headers=headers or HEADERS)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()


class TestTenantHeader(_ApiTestCase):
    def test_missing_header_is_400(self) -> None:
        response = self.client.get("/api/v1/policies")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "X-Tenant-ID header is required")

    def test_blank_header_is_400(self) -> None:
        response = self.client.get("/api/v1/poam", headers={"X-Tenant-ID": "   "})
        self.assertEqual(response.status_code, 400)

    def test_health_needs_no_tenant(self) -> None:
        response = self.client.get("/api/v1/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["database"], "connected")


class TestEvidence(_ApiTestCase):
    def test_upload_normalizes_findings(self) -> None:
        body = self._upload()
        self.assertEqual(body["tenant_id"], "tenant-a")
        self.assertEqual(body["vulnerability_count"], 2)
        self.assertEqual(body["severity_counts"]["critical"], 1)
        self.assertEqual(body["severity_counts"]["high"], 1)

    def test_other_tenant_gets_404(self) -> None:
        body = self._upload()
        response = self.client.get(
            f"/api/v1/evidence/{body['id']}", headers={"X-Tenant-ID": "tenant-b"}
        )
        self.assertEqual(response.status_code, 404)
        self.assertIn("Evidence not found", response.json()["detail"])

    def test_invalid_cvss_rejected(self) -> None:
        bad = dict(EVIDENCE_BODY, vulnerabilities=[{"cve_id": "CVE-1", "cvss_score": 11}])
        response = self.client.post("/api/v1/evidence", json=bad, headers=HEADERS)
        self.assertEqual(response.status_code, 422)


class TestPolicies(_ApiTestCase):
    def test_create_duplicate_and_invalid(self) -> None:
        policy = {"name": "no-criticals", "type": "CVE_SEVERITY", "parameters": {"maxCritical": 0}}
        created = self.client.post("/api/v1/policies", json=policy, headers=HEADERS)
        self.assertEqual(created.status_code, 201, created.text)
        self.assertEqual(created.json()["parameters"], {"maxCritical": 0})

        duplicate = self.client.post("/api/v1/policies", json=policy, headers=HEADERS)
        self.assertEqual(duplicate.status_code, 409)

        invalid = dict(policy, name="other", parameters={"maxCritical": -1})
        response = self.client.post("/api/v1/policies", json=invalid, headers=HEADERS)
        self.assertEqual(response.status_code, 422)

    def test_evaluate_and_history(self) -> None:
        evidence = self._upload()
        self.client.post(
            "/api/v1/policies",
            json={
                "name": "registries",
                "type": "ALLOWED_REGISTRIES",
                "parameters": {"allowedRegistries": ["gcr.io"]},
            },
            headers=HEADERS,
        )
        response = self.client.post(
            "/api/v1/policies/evaluate", json={"evidence_id": evidence["id"]}, headers=HEADERS
        )
        self.assertEqual(response.status_code, 200, response.text)
        results = response.json()
        self.assertEqual(len(results), 1)
        self.assertFalse(results[0]["passed"])
        self.assertEqual(results[0]["violations"][0]["severity"], "High")

        history = self.client.get(f"/api/v1/policies/evaluations/{evidence['id']}", headers=HEADERS)
        self.assertEqual(len(history.json()), 1)

    def test_delete_missing_policy_is_404(self) -> None:
        response = self.client.delete(f"/api/v1/policies/{uuid.uuid4()}", headers=HEADERS)
        self.assertEqual(response.status_code, 404)


class TestPoamAndIncidents(_ApiTestCase):
    def test_process_then_read_back(self) -> None:
        evidence = self._upload()
        processed = self.client.post(f"/api/v1/evidence/{evidence['id']}/process", headers=HEADERS)
        self.assertEqual(processed.status_code, 200, processed.text)
        self.assertEqual(processed.json()["poam_items_created"], 2)

        items = self.client.get("/api/v1/poam", headers=HEADERS).json()
        self.assertEqual([i["cve_id"] for i in items], ["CVE-2024-0001", "CVE-2024-0002"])
        self.assertEqual(items[0]["risk_level"], "very-high")

        stats = self.client.get("/api/v1/poam/stats", headers=HEADERS).json()
        self.assertEqual(stats["total"], 2)

        csv_response = self.client.get("/api/v1/poam/export/csv", headers=HEADERS)
        self.assertEqual(csv_response.status_code, 200)
        self.assertTrue(csv_response.headers["content-type"].startswith("text/csv"))

        oscal = self.client.get(
            "/api/v1/poam/export/oscal", params={"tenant_name": "Acme"}, headers=HEADERS
        ).json()
        self.assertEqual(len(oscal["plan-of-action-and-milestones"]["poam-items"]), 2)

        clusters = self.client.get("/api/v1/incidents/clusters", headers=HEADERS).json()
        self.assertEqual(clusters[0]["severity"], "CRITICAL")

    def test_poam_status_errors(self) -> None:
        evidence = self._upload()
        items = self.client.post(
            "/api/v1/poam/generate", json={"evidence_id": evidence["id"]}, headers=HEADERS
        ).json()
        poam_id = items[0]["id"]

        missing_rationale = self.client.patch(
            f"/api/v1/poam/{poam_id}/status",
            json={"status": "closed", "actor": "alice"},
            headers=HEADERS,
        )
        self.assertEqual(missing_rationale.status_code, 422)

        closed = self.client.patch(
            f"/api/v1/poam/{poam_id}/status",
            json={"status": "closed", "actor": "alice", "rationale": "Patched"},
            headers=HEADERS,
        )
        self.assertEqual(closed.status_code, 200, closed.text)
        self.assertEqual(closed.json()["closed_by"], "alice")

        reopen = self.client.patch(
            f"/api/v1/poam/{poam_id}/status", json={"status": "open"}, headers=HEADERS
        )
        self.assertEqual(reopen.status_code, 409)

    def test_incident_acknowledge(self) -> None:
        evidence = self._upload()
        raised = self.client.post(
            "/api/v1/incidents/generate",
            json={"evidence_id": evidence["id"], "include_policy_violations": False},
            headers=HEADERS,
        )
        self.assertEqual(raised.status_code, 201, raised.text)
        incident_id = raised.json()[0]["id"]

        acked = self.client.patch(
            f"/api/v1/incidents/{incident_id}/status",
            json={"status": "ACKNOWLEDGED", "actor": "oncall"},
            headers=HEADERS,
        )
        self.assertEqual(acked.status_code, 200)
        self.assertIsNotNone(acked.json()["tta_minutes"])

        missing = self.client.get(f"/api/v1/incidents/{uuid.uuid4()}", headers=HEADERS)
        self.assertEqual(missing.status_code, 404)


if __name__ == "__main__":
    unittest.main()
