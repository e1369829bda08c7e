import unittest
from datetime import datetime, timedelta
from data.candidate_tracker import CandidateTracker, LauncherBalanceLookup, SolPriceProvider
from notify.telegram import TelegramNotifier
from risk.monitoring import FeedHealthMonitor
from risk.position import Position
from risk.trade_journal import TradeJournal
from utils.config import TelegramConfig
from fakes import WorkspaceMixin, make_event


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class CandidateTrackerTests(WorkspaceMixin, unittest.TestCase):
    def tracker(self, clock=None):
        balances = LauncherBalanceLookup(None, self.logger)
        return CandidateTracker(SolPriceProvider(self.logger, default_price=150.0), balances,
                                price_window_seconds=60, clock=clock or Clock(datetime(2024, 5, 1, 12, 0)))

    def test_candidate_from_trades(self):
        t = self.tracker()
        t.balances.set("launcher", 0.4)
        t.update(make_event(user="launcher", sol=1.0, blocktime=100, real_sol=1.0))
        t.update(make_event(user="sniper", sol=2.0, blocktime=100, real_sol=3.0))
        candidate = t.update(make_event(user="seller", sol=0.5, is_buy=False, blocktime=101, real_sol=2.5))

        self.assertEqual(candidate.buy_count, 2)
        self.assertEqual(candidate.sell_count, 1)
        self.assertEqual(candidate.launcher, "launcher")
        self.assertEqual(candidate.dev_buy, 1.0)
        self.assertEqual(candidate.launcher_sol_balance, 0.4)
        self.assertTrue(candidate.is_bundled)
        self.assertEqual(candidate.buy_flow_lamports, 3_000_000_000)
        self.assertEqual(candidate.sol_invested, 2.5)
        self.assertAlmostEqual(candidate.volume, 3.5 * 150 / 1000)
        self.assertAlmostEqual(candidate.market_cap, 30 / 1_073_000_000 * 1_000_000_000 * 150 / 1000)

    def test_single_early_buyer_is_not_bundled(self):
        t = self.tracker()
        t.update(make_event(user="launcher", blocktime=100))
        candidate = t.update(make_event(user="later", blocktime=105))
        self.assertFalse(candidate.is_bundled)
        self.assertIsNone(candidate.launcher_sol_balance)

    def test_price_change_within_window(self):
        clock = Clock(datetime(2024, 5, 1, 12, 0))
        t = self.tracker(clock)
        t.update(make_event(v_sol=30.0))
        clock.now += timedelta(seconds=30)
        candidate = t.update(make_event(v_sol=33.0))
        self.assertAlmostEqual(candidate.price_change_pct, 10.0)

        clock.now += timedelta(seconds=90)
        candidate = t.update(make_event(v_sol=33.0))
        self.assertAlmostEqual(candidate.price_change_pct, 0.0)
        self.assertIsNone(t.snapshot("unknown"))


class TradeJournalTests(WorkspaceMixin, unittest.TestCase):
    def test_trade_journal_summary(self):
        journal = TradeJournal(str(self.tmp_path / "journal" / "trades.csv"), self.logger)
        position = Position("MintA", 1_000_000_000, 0.0, 0.001, stages=[], entry_sol=1_000_000_000)
        journal.record_entry(position)
        position.record_sell(400_000_000, 600_000_000)
        journal.record_exit(position, 400_000_000, 600_000_000, "stage 1/2 timer", "sig1")
        position.record_sell(600_000_000, 900_000_000)
        journal.record_exit(position, 600_000_000, 900_000_000, "stage 2/2 timer", "sig2")

        summary = journal.summary()
        self.assertEqual(summary["trades"], 1)
        self.assertAlmostEqual(summary["spent_sol"], 1.0)
        self.assertAlmostEqual(summary["received_sol"], 1.5)
        self.assertAlmostEqual(summary["realized_pnl_sol"], 0.5)
        self.assertAlmostEqual(summary["per_token"]["MintA"], 0.5)


class FeedHealthTests(WorkspaceMixin, unittest.TestCase):
    def test_feed_health(self):
        clock = Clock(0.0)
        health = FeedHealthMonitor(self.logger, stale_after=90, clock=clock)
        self.assertFalse(health.healthy)

        health.on_connected()
        self.assertTrue(health.healthy)
        clock.now = 100.0
        self.assertFalse(health.healthy)
        health.on_event()
        self.assertTrue(health.healthy)

        health.on_disconnected("code 1006")
        self.assertFalse(health.healthy)
        self.assertEqual(health.get_status()['disconnects'], 1)


class TelegramNotifierTests(WorkspaceMixin, unittest.IsolatedAsyncioTestCase):
    async def test_telegram_disabled_sends_nothing(self):
        notifier = TelegramNotifier(TelegramConfig(), self.logger)
        self.assertFalse(notifier.enabled)
        self.assertIs(await notifier.send("hello"), False)
        self.assertEqual(notifier.sent, 0)


if __name__ == "__main__":
    unittest.main()
