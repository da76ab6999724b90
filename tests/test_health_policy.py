import unittest

from contracts.backend import BackendInstance
from contracts.health import HealthState, ProbeOutcome
from core.health_policy import HealthPolicy

PASS = ProbeOutcome.PASS
FAIL = ProbeOutcome.FAIL


class TestHealthPolicy(unittest.TestCase):
    def setUp(self):
        self.policy = HealthPolicy(unhealthy_threshold=3, healthy_threshold=2)

    def _run(self, backend, outcomes):
        states = []
        for outcome in outcomes:
            states.append(self.policy.apply(backend, outcome))
        return states

    def test_defaults(self):
        policy = HealthPolicy()
        self.assertEqual(policy.unhealthy_threshold, 3)
        self.assertEqual(policy.healthy_threshold, 2)

    def test_thresholds_must_be_positive(self):
        with self.assertRaises(ValueError):
            HealthPolicy(unhealthy_threshold=0)
        with self.assertRaises(ValueError):
            HealthPolicy(healthy_threshold=0)

    def test_unknown_becomes_healthy_on_first_pass(self):
        backend = BackendInstance(url="http://a:5000")
        self.assertEqual(self.policy.apply(backend, PASS), HealthState.HEALTHY)

    def test_unknown_becomes_unhealthy_after_threshold_failures(self):
        backend = BackendInstance(url="http://a:5000")
        states = self._run(backend, [FAIL, FAIL, FAIL])
        self.assertEqual(states, [HealthState.UNKNOWN, HealthState.UNKNOWN, HealthState.UNHEALTHY])

    def test_healthy_flips_only_at_threshold(self):
        for threshold in (1, 2, 3, 5):
            with self.subTest(threshold=threshold):
                policy = HealthPolicy(unhealthy_threshold=threshold, healthy_threshold=2)
                backend = BackendInstance(url="http://a:5000", state=HealthState.HEALTHY)
                for i in range(1, threshold + 3):
                    state = policy.apply(backend, FAIL)
                    if i < threshold:
                        self.assertEqual(state, HealthState.HEALTHY)
                    else:
                        self.assertEqual(state, HealthState.UNHEALTHY)

    def test_single_transient_failure_does_not_flap(self):
        backend = BackendInstance(url="http://a:5000", state=HealthState.HEALTHY)
        states = self._run(backend, [FAIL, PASS, FAIL, FAIL, PASS, FAIL])
        self.assertTrue(all(s == HealthState.HEALTHY for s in states))

    def test_unhealthy_recovers_after_threshold_passes(self):
        backend = BackendInstance(url="http://a:5000", state=HealthState.UNHEALTHY)
        states = self._run(backend, [PASS, PASS, PASS])
        self.assertEqual(
            states, [HealthState.UNHEALTHY, HealthState.HEALTHY, HealthState.HEALTHY]
        )

    def test_recovery_streak_is_reset_by_failure(self):
        backend = BackendInstance(url="http://a:5000", state=HealthState.UNHEALTHY)
        states = self._run(backend, [PASS, FAIL, PASS])
        self.assertTrue(all(s == HealthState.UNHEALTHY for s in states))
        self.assertEqual(self.policy.apply(backend, PASS), HealthState.HEALTHY)

    def test_counters(self):
        backend = BackendInstance(url="http://a:5000", state=HealthState.HEALTHY)
        self._run(backend, [FAIL, FAIL])
        self.assertEqual(backend.consecutive_failures, 2)
        self.assertEqual(backend.consecutive_successes, 0)
        self.policy.apply(backend, PASS)
        self.assertEqual(backend.consecutive_failures, 0)
        self.assertEqual(backend.consecutive_successes, 1)


if __name__ == "__main__":
    unittest.main()
