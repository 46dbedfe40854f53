import unittest
from unittest import mock

from stableflows.services import insights
from stableflows.services.insights import (
    basic_insights,
    build_comparison_text,
    generate_weekly_analysis,
    parse_bullets,
)


def _chain(chain, rank, stable_tvl, util):
    return {
        "chain": chain, "rank": rank, "stable_tvl": stable_tvl, "defi_tvl": stable_tvl * 5,
        "stable_supply": stable_tvl * 100 / util if util else 0.0,
        "util_percent": util, "stbl_defi_percent": 20.0,
    }


def _snapshot(chains):
    total = sum(c["stable_tvl"] for c in chains)
    return {
        "timestamp": "2026-03-02T06:00:00.000Z",
        "chains": chains,
        "totals": {"stable_tvl": total, "defi_tvl": total * 5, "stable_supply": total * 4,
                   "util_percent": 25.0, "stbl_defi_percent": 20.0},
    }


class ParseBulletsTests(unittest.TestCase):
    def test_json_array(self):
        self.assertEqual(parse_bullets('["a", "b", "c", "d"]'), ["a", "b", "c"])

    def test_embedded_array(self):
        self.assertEqual(parse_bullets('Sure, here you go:\n["x", "y"]\nHope that helps.'), ["x", "y"])

    def test_plain_lines(self):
        self.assertEqual(parse_bullets("one\n\ntwo\nthree\nfour"), ["one", "two", "three"])

    def test_empty(self):
        self.assertEqual(parse_bullets(""), [])


class BasicInsightsTests(unittest.TestCase):
    def test_three_rule_bullets(self):
        snap = _snapshot([
            _chain("Ethereum", 1, 5e9, 20.0),
            _chain("Base", 2, 1e9, 60.0),
            _chain("Solana", 3, 5e7, 90.0),
        ])
        bullets = basic_insights(snap)
        self.assertEqual(len(bullets), 3)
        self.assertIn("Total stablecoin TVL", bullets[0])
        self.assertTrue(bullets[1].startswith("Ethereum leads"))
        # Solana is below the significance floor, so Base is the efficient one
        self.assertTrue(bullets[2].startswith("Base shows highest capital efficiency"))

    def test_leader_is_most_efficient(self):
        snap = _snapshot([_chain("Ethereum", 1, 5e9, 80.0), _chain("Base", 2, 1e9, 60.0)])
        bullets = basic_insights(snap)
        self.assertTrue(bullets[2].startswith("Base holds #2"))

    def test_no_chains(self):
        self.assertEqual(len(basic_insights(_snapshot([]))), 1)


class WeeklyAnalysisTests(unittest.TestCase):
    def test_without_api_key_uses_rules(self):
        snap = _snapshot([_chain("Ethereum", 1, 5e9, 20.0)])
        analysis = generate_weekly_analysis(snap, None, api_key=None)
        self.assertEqual(analysis["bullets"], basic_insights(snap))
        self.assertTrue(analysis["timestamp"])

    def test_model_reply_parsed(self):
        snap = _snapshot([_chain("Ethereum", 1, 5e9, 20.0)])
        block = mock.Mock(type="text", text='["one", "two", "three"]')
        client = mock.Mock()
        client.messages.create.return_value = mock.Mock(content=[block])
        with mock.patch.object(insights.anthropic, "Anthropic", return_value=client):
            analysis = generate_weekly_analysis(snap, snap, api_key="k")
        self.assertEqual(analysis["bullets"], ["one", "two", "three"])
        prompt = client.messages.create.call_args.kwargs["messages"][0]["content"]
        self.assertIn("WoW", prompt)

    def test_comparison_text_without_previous(self):
        text = build_comparison_text(_snapshot([_chain("Base", 1, 2e9, 40.0)]), None)
        self.assertIn("1. Base: Stable TVL $2.00B", text)
        self.assertNotIn("WoW", text)


if __name__ == "__main__":
    unittest.main()
