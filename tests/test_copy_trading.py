import unittest
from core.types import Side
from strategies.copy_trading_strategy import CopyTradingMirror
from utils.config import CopyTradingConfig
from fakes import WorkspaceMixin, make_event

TARGET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
OTHER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


class CopyTradingMirrorTests(WorkspaceMixin, unittest.TestCase):
    def mirror(self, **overrides) -> CopyTradingMirror:
        values = dict(
            enabled=True,
            buy_sell_percent=50.0,
            target_wallets=(TARGET, OTHER),
            mc_threshold_to_buy=1_000_000.0,
            mc_threshold_to_follow=500_000.0,
        )
        values.update(overrides)
        return CopyTradingMirror(CopyTradingConfig(**values), self.logger)

    def test_buy_is_mirrored_at_configured_share(self):
        signal = self.mirror().generate_signal(make_event(user=TARGET, sol=2.0, signature="s1"), 100_000, False)
        self.assertTrue(signal.is_valid)
        self.assertIs(signal.side, Side.BUY)
        self.assertAlmostEqual(signal.amount_sol, 1.0)
        self.assertEqual(signal.wallet_address, TARGET)

    def test_buy_above_market_cap_threshold_is_skipped(self):
        signal = self.mirror().generate_signal(make_event(user=TARGET, signature="s1"), 600_000, False)
        self.assertFalse(signal.is_valid)
        self.assertEqual(signal.reason, "market cap above threshold")

    def test_only_first_wallet_without_multi_target(self):
        single = self.mirror()
        self.assertTrue(single.is_target(TARGET))
        self.assertFalse(single.is_target(OTHER))
        self.assertTrue(self.mirror(multi_target_mode=True).is_target(OTHER))

    def test_wallet_match_is_exact(self):
        self.assertFalse(self.mirror().is_target(TARGET.lower()))

    def test_sell_mirrors_fraction_of_target_holding(self):
        m = self.mirror()
        m.generate_signal(make_event(user=TARGET, tokens=1000, signature="b1"), 100_000, False)
        signal = m.generate_signal(make_event(user=TARGET, tokens=250, is_buy=False, signature="s1"), 100_000, True)
        self.assertTrue(signal.is_valid)
        self.assertIs(signal.side, Side.SELL)
        self.assertAlmostEqual(signal.fraction, 0.25)

        rest = m.generate_signal(make_event(user=TARGET, tokens=750, is_buy=False, signature="s2"), 100_000, True)
        self.assertAlmostEqual(rest.fraction, 1.0)

    def test_sell_without_mirrored_position_is_ignored(self):
        signal = self.mirror().generate_signal(make_event(user=TARGET, is_buy=False, signature="s1"), 100_000, False)
        self.assertFalse(signal.is_valid)
        self.assertIs(signal.side, Side.SELL)

    def test_duplicate_trade_is_processed_once(self):
        m = self.mirror()
        event = make_event(user=TARGET, signature="dup", sequence=5)
        self.assertTrue(m.generate_signal(event, 100_000, False).is_valid)
        repeat = m.generate_signal(event, 100_000, False)
        self.assertFalse(repeat.is_valid)
        self.assertEqual(repeat.reason, "already processed")

    def test_disabled_mirror_ignores_everyone(self):
        m = self.mirror(enabled=False)
        self.assertFalse(m.enabled)
        self.assertFalse(m.generate_signal(make_event(user=TARGET, signature="s1"), 100_000, False).is_valid)


if __name__ == "__main__":
    unittest.main()
