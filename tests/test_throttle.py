import unittest

from vroomhero.roads.models import ThrottleState
from vroomhero.roads.throttle import record_call, should_call_remote


class ThrottleTests(unittest.TestCase):
    def test_first_call_always_allowed(self):
        self.assertTrue(should_call_remote(ThrottleState(), 0, 90_000))

    def test_interval_boundary(self):
        state = ThrottleState(last_call_ms=1_000)
        self.assertFalse(should_call_remote(state, 10_999, 10_000))
        self.assertTrue(should_call_remote(state, 11_000, 10_000))

    def test_decision_does_not_mutate(self):
        state = ThrottleState(last_call_ms=5)
        should_call_remote(state, 100_000, 10_000)
        self.assertEqual(state.last_call_ms, 5)
        record_call(state, 100_000)
        self.assertEqual(state.last_call_ms, 100_000)


if __name__ == "__main__":
    unittest.main()
