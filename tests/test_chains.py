import unittest

from stableflows.pipeline.chains import is_tracked, normalize_chain_name, tracked_chain
from stableflows.pipeline.constants import TRACKED_CHAINS, TrackingConfig


class ChainNameTests(unittest.TestCase):
    def test_aliases(self):
        self.assertEqual(normalize_chain_name("Binance"), "BSC")
        self.assertEqual(normalize_chain_name("BNB Chain"), "BSC")
        self.assertEqual(normalize_chain_name("Hyperliquid L1"), "Hyperliquid")
        self.assertEqual(normalize_chain_name("  Binance "), "BSC")

    def test_unknown_passes_through(self):
        self.assertEqual(normalize_chain_name("Fantom"), "Fantom")
        self.assertEqual(normalize_chain_name(""), "")
        self.assertEqual(normalize_chain_name(None), "")

    def test_idempotent(self):
        for raw in ("Binance", "BNB Chain", "Hyperliquid L1", "Ethereum", "Fantom"):
            once = normalize_chain_name(raw)
            self.assertEqual(normalize_chain_name(once), once)

    def test_tracked(self):
        for chain in TRACKED_CHAINS:
            self.assertTrue(is_tracked(chain))
        self.assertFalse(is_tracked("Binance"))
        self.assertEqual(tracked_chain("Binance"), "BSC")
        self.assertIsNone(tracked_chain("Fantom"))

    def test_custom_tracking(self):
        tracking = TrackingConfig(tracked_chains=["Ethereum"], chain_aliases={"Mainnet": "Ethereum"})
        self.assertEqual(tracked_chain("Mainnet", tracking), "Ethereum")
        self.assertIsNone(tracked_chain("Base", tracking))


if __name__ == "__main__":
    unittest.main()
