import unittest

from stableflows.pipeline.symbols import classifier_for, is_target_stablecoin


class StableSymbolTests(unittest.TestCase):
    def test_plain_tickers(self):
        for symbol in ("USDC", "USDT", "PYUSD", "usdc", " USDT "):
            self.assertTrue(is_target_stablecoin(symbol), symbol)

    def test_bridged_and_suffixed_forms(self):
        for symbol in ("USDC.e", "axlUSDT", "whUSDC", "lzUSDC", "USDT.e", "USDC.arb", "USDT0", "WUSDC", "WUSDT"):
            self.assertTrue(is_target_stablecoin(symbol), symbol)

    def test_vault_and_wrapper_tokens_rejected(self):
        for symbol in ("VBUSDC", "gtUSDC", "yvUSDC", "sUSDC", "aUSDT", "USDCx", "fUSDC", "USDC+"):
            self.assertFalse(is_target_stablecoin(symbol), symbol)

    def test_other_assets_and_empty(self):
        for symbol in ("DAI", "WETH", "FRAX", "", None, "USD"):
            self.assertFalse(is_target_stablecoin(symbol), symbol)

    def test_custom_ticker_set(self):
        classify = classifier_for(["USDC"])
        self.assertTrue(classify("axlUSDC"))
        self.assertFalse(classify("USDT"))
        self.assertFalse(classify("USDT0"))


if __name__ == "__main__":
    unittest.main()
