import unittest

from sweet_garden.rate_limit import RateLimiter


class RateLimiterTest(unittest.TestCase):

    def setUp(self):
        self.now = 1000.0
        self.limiter = RateLimiter(5, 900, 'Demasiadas solicitudes.', clock=lambda: self.now)

    def test_sixth_request_in_window_is_refused(self):
        results = [self.limiter.hit('1.2.3.4') for _ in range(6)]
        self.assertEqual([allowed for allowed, _, _ in results], [True] * 5 + [False])
        self.assertEqual(results[0][1], 4)
        self.assertEqual(results[5][1], 0)

    def test_clients_are_counted_separately(self):
        for _ in range(5):
            self.limiter.hit('1.2.3.4')
        self.assertTrue(self.limiter.hit('5.6.7.8')[0])

    def test_window_resets(self):
        for _ in range(6):
            self.limiter.hit('1.2.3.4')
        self.now += 900
        allowed, remaining, reset_in = self.limiter.hit('1.2.3.4')
        self.assertTrue(allowed)
        self.assertEqual(remaining, 4)
        self.assertEqual(reset_in, 900)


if __name__ == '__main__':
    unittest.main()
