import unittest

from contracts.backend import BackendInstance, RegistrationResponse
from contracts.health import HealthCheckResult, HealthState, ProbeOutcome
from contracts.message import Message
from contracts.routing import RoutingDecision
from contracts.view_state import ViewState, ViewStatus


class TestBackendContract(unittest.TestCase):
    def test_backend_defaults(self):
        b = BackendInstance(url="http://u:1", port=1)
        self.assertEqual(b.state, HealthState.UNKNOWN)
        self.assertEqual(b.consecutive_successes, 0)
        self.assertEqual(b.consecutive_failures, 0)
        self.assertEqual(b.active_connections, 0)
        self.assertIsNone(b.last_probe_at)
        self.assertFalse(b.is_eligible)

    def test_only_healthy_is_eligible(self):
        self.assertTrue(BackendInstance(url="u", state=HealthState.HEALTHY).is_eligible)
        self.assertFalse(BackendInstance(url="u", state=HealthState.UNHEALTHY).is_eligible)
        self.assertFalse(BackendInstance(url="u", state=HealthState.UNKNOWN).is_eligible)

    def test_backend_equality_and_hash(self):
        b1 = BackendInstance(url="u", port=1)
        b2 = BackendInstance(url="u", port=1, state=HealthState.HEALTHY)
        b3 = BackendInstance(url="v", port=2)
        self.assertEqual(b1, b2)
        self.assertNotEqual(b1, b3)
        self.assertEqual(hash(b1), hash(b2))
        self.assertNotEqual(hash(b1), hash(b3))

    def test_backend_repr(self):
        s = repr(BackendInstance(url="u", port=1))
        self.assertIn("BackendInstance(url=u", s)
        self.assertIn("state=unknown", s)

    def test_backend_validation(self):
        with self.assertRaises(Exception):
            BackendInstance()

    def test_registration_response_serializes_state(self):
        resp = RegistrationResponse(status="registered", backend=BackendInstance(url="u"))
        self.assertEqual(resp.model_dump(mode="json")["backend"]["state"], "unknown")


class TestHealthCheckResultContract(unittest.TestCase):
    def test_fields(self):
        r = HealthCheckResult(backend_url="http://u:1", outcome=ProbeOutcome.PASS, status_code=200)
        self.assertTrue(r.passed)
        self.assertGreater(r.timestamp, 0)
        self.assertEqual(r.status_code, 200)

    def test_fail(self):
        r = HealthCheckResult(backend_url="http://u:1", outcome="fail", detail="timeout")
        self.assertFalse(r.passed)
        self.assertEqual(r.outcome, ProbeOutcome.FAIL)


class TestSmallContracts(unittest.TestCase):
    def test_message(self):
        self.assertEqual(Message(message="hi").model_dump(), {"message": "hi"})
        with self.assertRaises(Exception):
            Message()

    def test_routing_decision(self):
        d = RoutingDecision(backend_url="http://a:1", policy="round_robin")
        self.assertEqual(d.backend_url, "http://a:1")
        self.assertGreater(d.decided_at, 0)

    def test_view_state_transitions(self):
        self.assertFalse(ViewState.loading().settled)
        ok = ViewState.success("Hello")
        self.assertTrue(ok.settled)
        self.assertEqual(ok.status, ViewStatus.SUCCESS)
        self.assertIsNone(ok.error)
        err = ViewState.failure("boom")
        self.assertEqual(err.status, ViewStatus.ERROR)
        self.assertIsNone(err.message)


if __name__ == "__main__":
    unittest.main()
