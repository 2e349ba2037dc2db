import collections
import unittest
from unittest.mock import patch

from whistlebox.services.pin_service import PinService


class TestPinGeneration(unittest.TestCase):

    def test_six_digits_without_leading_zero(self):
        for _ in range(500):
            pin = PinService.generate_pin()
            self.assertEqual(len(pin), 6)
            self.assertTrue(pin.isdigit())
            self.assertTrue(100000 <= int(pin) <= 999999)

    @patch("whistlebox.services.pin_service.secrets.randbelow")
    def test_range_endpoints(self, mock_randbelow):
        mock_randbelow.return_value = 0
        self.assertEqual(PinService.generate_pin(), "100000")
        mock_randbelow.return_value = 899999
        self.assertEqual(PinService.generate_pin(), "999999")
        mock_randbelow.assert_called_with(900000)

    def test_low_order_digit_roughly_uniform(self):
        draws = 20000
        counts = collections.Counter(PinService.generate_pin()[-1] for _ in range(draws))
        self.assertEqual(set(counts), set("0123456789"))
        for digit, count in counts.items():
            # expected 2000, sigma ~42
            self.assertTrue(1700 < count < 2300, f"digit {digit} drawn {count} times")


class TestPinVerification(unittest.TestCase):

    def setUp(self):
        self.pin = "483920"
        self.digest = PinService.hash_pin(self.pin)

    def test_correct_pin(self):
        self.assertTrue(PinService.verify_pin(self.pin, self.digest))

    def test_generated_pins_verify(self):
        for _ in range(50):
            pin = PinService.generate_pin()
            self.assertTrue(PinService.verify_pin(pin, PinService.hash_pin(pin)))

    def test_wrong_pin(self):
        self.assertFalse(PinService.verify_pin("483921", self.digest))

    def test_malformed_input_fails_closed(self):
        for bad in (None, "", "48392", "4839200", "048392", "48392a", " 483920", "483920\n", 483920):
            self.assertFalse(PinService.verify_pin(bad, self.digest), repr(bad))

    def test_missing_or_malformed_digest_fails_closed(self):
        self.assertFalse(PinService.verify_pin(self.pin, None))
        self.assertFalse(PinService.verify_pin(self.pin, ""))
        self.assertFalse(PinService.verify_pin(self.pin, self.digest[:-1]))

    @patch("whistlebox.services.pin_service.PinService.hash_pin")
    def test_internal_error_fails_closed(self, mock_hash):
        mock_hash.side_effect = RuntimeError("boom")
        self.assertFalse(PinService.verify_pin(self.pin, self.digest))


if __name__ == "__main__":
    unittest.main()
