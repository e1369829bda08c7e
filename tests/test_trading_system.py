import io
import os
import unittest
from contextlib import redirect_stderr
from unittest import mock
from data.replay_data_feed import ReplayDataFeed
from core.trading_system import TradingSystem
from run_trading_system import main
from fakes import WorkspaceMixin, wallet


class TradingSystemTests(WorkspaceMixin, unittest.IsolatedAsyncioTestCase):
    async def test_simulated_system_wiring(self):
        replay = self.tmp_path / "replay.csv"
        replay.write_text(
            "timestamp,mint,sol_amount,token_amount,is_buy,user,virtual_sol_reserves,virtual_token_reserves\n"
            "2024-05-01 12:00:00,MintA,1.5,3000,True,u1,30,1000000000\n"
        )
        config = self.make_config(
            REPLAY_DATA_PATH=str(replay),
            USE_JITO="true",
            ZERO_SLOT_URL="https://zeroslot.example",
            COPY_TRADING_ENABLED="true",
            TARGET_WALLETS=wallet(2),
        )
        system = TradingSystem(config, self.logger)
        try:
            self.assertEqual([v.name for v in system.venues], ["jito", "zeroslot", "rpc"])
            self.assertIsInstance(system.data_feed, ReplayDataFeed)
            self.assertTrue(system.router.simulated)
            self.assertIsNone(system.router.signer)
            self.assertIsNone(system.wallet)
            self.assertIsNotNone(system.mirror)
            self.assertTrue(system.mirror.is_target(wallet(2)))
            self.assertEqual(system.data_feed.callbacks, [system.controller.enqueue])
            self.assertTrue((self.tmp_path / "trades.csv").exists())
        finally:
            await system.client.close()


class MainTests(WorkspaceMixin, unittest.TestCase):
    def test_main_rejects_bad_config(self):
        stderr = io.StringIO()
        with mock.patch.dict(os.environ, {"SIMULATION_MODE": "true", "MAX_WAIT_TIME": "soon"}), \
                redirect_stderr(stderr):
            code = main(["--env-file", str(self.tmp_path / "missing.env")])
        self.assertEqual(code, 2)
        self.assertIn("MAX_WAIT_TIME", stderr.getvalue())


if __name__ == "__main__":
    unittest.main()
