import asyncio
import unittest
from core.types import TokenCandidate
from risk.exit_manager import ExitManager
from risk.position import PositionState, staged_exits
from strategies.filter_pipeline import FilterCriteria, RangeCriterion
from fakes import FakeNotifier, FakeRouter, WorkspaceMixin

TOKENS = 1_000_000_000


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def staged_settings(**extra):
    settings = {
        "PRIVATE_LOGIC_ENABLED": "true",
        "PL_STAGE_1_PERCENT": "10", "PL_STAGE_1_DELAY": "60000",
        "PL_STAGE_2_PERCENT": "20", "PL_STAGE_2_DELAY": "120000",
        "PL_STAGE_3_PERCENT": "30", "PL_STAGE_3_DELAY": "180000",
    }
    for n in range(4, 8):
        settings[f"PL_STAGE_{n}_PERCENT"] = "0"
    settings.update(extra)
    return settings


class StagedExitsTests(unittest.TestCase):
    def test_stages_are_ordered_and_keep_their_percent(self):
        stages = staged_exits([(20.0, 120_000), (0.0, 5_000), (10.0, 60_000)])
        self.assertEqual([(s.percent, s.delay) for s in stages], [(10.0, 60.0), (20.0, 120.0)])
        self.assertFalse(any(s.flush for s in stages))

        fallback = staged_exits([(0.0, 1000)])
        self.assertEqual(len(fallback), 1)
        self.assertTrue(fallback[0].flush)


class ExitManagerTests(WorkspaceMixin, unittest.IsolatedAsyncioTestCase):
    def manager(self, clock=None, notifier=None, **settings):
        router = FakeRouter()
        exits = ExitManager(self.make_config(**settings), router, self.logger,
                            clock=clock or Clock(), notifier=notifier)
        return exits, router

    async def test_stage_fires_once_when_due(self):
        exits, router = self.manager(**staged_settings())
        position = exits.open_position("MintA", TOKENS, 0.0001)

        self.assertEqual(await exits.tick(now=59), 0)
        self.assertEqual(await exits.tick(now=65), 1)
        self.assertEqual(await exits.tick(now=65), 0)
        self.assertEqual(len(router.sells()), 1)
        self.assertEqual(router.sells()[0].amount, TOKENS // 10)
        self.assertEqual(position.exited_stages, 1)
        self.assertIs(position.state, PositionState.PARTIALLY_EXITED)

    async def test_concurrent_ticks_fire_a_stage_once(self):
        exits, router = self.manager(**staged_settings())
        exits.open_position("MintA", TOKENS, 0.0001)
        await asyncio.gather(exits.tick(now=65), exits.tick(now=65))
        self.assertEqual(len(router.sells()), 1)

    async def test_two_stage_schedule_sells_each_share_of_remaining(self):
        exits, router = self.manager(**staged_settings(PL_STAGE_3_PERCENT="0"))
        position = exits.open_position("MintA", TOKENS, 0.0001)

        self.assertEqual(await exits.tick(now=65), 1)
        self.assertEqual(await exits.tick(now=65), 0)
        self.assertEqual(await exits.tick(now=125), 1)

        self.assertEqual([i.amount for i in router.sells()], [100_000_000, 180_000_000])
        self.assertEqual(position.remaining, 720_000_000)
        self.assertIs(position.state, PositionState.PARTIALLY_EXITED)
        self.assertEqual(await exits.tick(now=1000), 0)

    async def test_stages_run_in_order_and_never_exceed_entry(self):
        exits, router = self.manager(**staged_settings())
        position = exits.open_position("MintA", TOKENS, 0.0001)

        await exits.tick(now=500)
        await exits.tick(now=500)
        await exits.tick(now=500)

        amounts = [i.amount for i in router.sells()]
        self.assertEqual(amounts, [100_000_000, 180_000_000, 216_000_000])
        self.assertAlmostEqual(position.sold_percent, 49.6)
        self.assertEqual(await exits.tick(now=1000), 0)

        self.assertEqual(await exits.liquidate_all("shutdown"), 1)
        self.assertEqual(sum(i.amount for i in router.sells()), TOKENS)
        self.assertAlmostEqual(position.sold_percent, 100.0)
        self.assertIs(position.state, PositionState.FORCE_LIQUIDATED)

    async def test_failed_stage_is_retried_then_escalated(self):
        notifier = FakeNotifier()
        exits, router = self.manager(notifier=notifier, TIME_EXCEED="30", **staged_settings())
        position = exits.open_position("MintA", TOKENS, 0.0001)
        router.fail = True

        await exits.tick(now=65)
        stage = position.stages[0]
        self.assertEqual(stage.attempts, 1)
        self.assertFalse(stage.consumed)
        self.assertFalse(await exits.trigger_next("MintA", "downing", now=65.5))

        await exits.tick(now=96)
        await exits.stop()
        self.assertTrue(stage.escalated)
        self.assertTrue(any("still failing" in m for m in notifier.messages))

        router.fail = False
        await exits.tick(now=97)
        self.assertTrue(stage.consumed)
        self.assertEqual(stage.attempts, 0)
        self.assertEqual(position.remaining, TOKENS - TOKENS // 10)

    async def test_take_profit_liquidates_everything(self):
        exits, router = self.manager(TAKE_PROFIT_PERCENT="50")
        position = exits.open_position("MintA", TOKENS, 1.0)

        await exits.on_price("MintA", 1.2)
        self.assertEqual(router.sells(), [])
        await exits.on_price("MintA", 1.6)
        self.assertIs(position.state, PositionState.FORCE_LIQUIDATED)
        self.assertEqual(router.sells()[0].amount, TOKENS)

    async def test_stop_loss(self):
        exits, router = self.manager(STOP_LOSS_PERCENT="30", DOWNING_PERCENT="0")
        position = exits.open_position("MintA", TOKENS, 1.0)
        await exits.on_price("MintA", 0.65)
        self.assertIs(position.state, PositionState.FORCE_LIQUIDATED)

    async def test_downing_fires_next_stage_early(self):
        exits, router = self.manager(**staged_settings(DOWNING_PERCENT="20"))
        position = exits.open_position("MintA", TOKENS, 1.0)

        await exits.on_price("MintA", 1.5)
        await exits.on_price("MintA", 1.3)
        self.assertEqual(router.sells(), [])
        await exits.on_price("MintA", 1.1)
        self.assertEqual(len(router.sells()), 1)
        self.assertTrue(position.stages[0].consumed)
        self.assertEqual(position.peak_price, 1.1)

        # the next stage keeps its own timer
        self.assertEqual(await exits.tick(now=65), 0)
        self.assertEqual(await exits.tick(now=125), 1)

    async def test_sell_pressure_fires_next_stage(self):
        exits, router = self.manager(**staged_settings(THRESHOLD_SELL="10000000000"))
        position = exits.open_position("MintA", TOKENS, 1.0)
        await exits.on_price("MintA", 1.0, sell_lamports=6_000_000_000)
        self.assertEqual(router.sells(), [])
        await exits.on_price("MintA", 1.0, sell_lamports=6_000_000_000)
        self.assertEqual(len(router.sells()), 1)
        self.assertEqual(position.sell_flow_lamports, 0)

    async def test_sell_all_tokens_empties_on_first_stage(self):
        exits, router = self.manager(**staged_settings(SELL_ALL_TOKENS="true"))
        position = exits.open_position("MintA", TOKENS, 0.0001)
        await exits.tick(now=65)
        self.assertEqual(router.sells()[0].amount, TOKENS)
        self.assertFalse(position.is_active)
        self.assertTrue(all(s.consumed for s in position.stages))

    async def test_failed_liquidation_is_retried(self):
        exits, router = self.manager(clock=Clock())
        position = exits.open_position("MintA", TOKENS, 1.0)
        router.fail = True

        self.assertFalse(await exits.force_liquidate("MintA", "stop_loss"))
        self.assertEqual(position.liquidation_pending, "stop_loss")

        router.fail = False
        self.assertEqual(await exits.tick(now=1.0), 1)
        self.assertIs(position.state, PositionState.FORCE_LIQUIDATED)
        self.assertEqual(position.liquidation_pending, "")

    async def test_liquidate_all(self):
        exits, router = self.manager(**staged_settings())
        exits.open_position("MintA", TOKENS, 0.0001)
        exits.open_position("MintB", TOKENS, 0.0002)
        self.assertEqual(await exits.liquidate_all("trading window closed"), 2)
        self.assertEqual(exits.active_positions(), [])
        self.assertEqual(await exits.tick(now=1000), 0)

    async def test_review_sells_positions_filters_turned_against(self):
        exits, router = self.manager(MIN_SELL_CONFIDENCE="0.6", **staged_settings())
        exits.open_position("MintA", TOKENS, 0.0001)
        exits.open_position("MintB", TOKENS, 0.0001)
        criteria = FilterCriteria(market_cap=RangeCriterion(True, 8, 15))

        def lookup(mint):
            market_cap = 40.0 if mint == "MintA" else 11.5
            return TokenCandidate(mint, market_cap, 0, 0, 0, None, 0, timestamp=None)

        self.assertEqual(await exits.review(lookup, criteria), ["MintA"])

    async def test_late_buy_adds_to_position(self):
        exits, router = self.manager(**staged_settings())
        position = exits.open_position("MintA", TOKENS, 0.0001)
        await exits.tick(now=65)

        intent = exits.intents.buy("MintA", 0.1, 0.0001)
        exits.record_late_fill(intent)
        self.assertEqual(position.entry_amount, TOKENS + intent.expected_tokens)
        self.assertEqual(position.remaining, TOKENS - TOKENS // 10 + intent.expected_tokens)
        self.assertLess(position.sold_percent, 10.0)


if __name__ == "__main__":
    unittest.main()
