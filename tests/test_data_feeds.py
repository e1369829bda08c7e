import base64
import json
import struct
import unittest
import base58
from data.pump_data_feed import PumpDataFeed, decode_trade_event
from data.replay_data_feed import ReplayDataFeed
from fakes import WorkspaceMixin

MINT = bytes(range(1, 33))
USER = bytes(range(33, 65))


def trade_bytes(sol: int = 2_000_000_000, tokens: int = 70_000_000_000_000, is_buy: bool = True,
                timestamp: int = 1_700_000_000) -> bytes:
    return (
        b"\xbd\xdb\x7f\xd3\x4e\xe6\x61\xee"
        + MINT
        + struct.pack("<QQ", sol, tokens)
        + bytes([1 if is_buy else 0])
        + USER
        + struct.pack("<QQQQQ", timestamp, 32_000_000_000, 1_000_000_000_000_000, 2_000_000_000, 793_000_000_000_000)
    )


def logs_for(data: bytes, instruction: str = "Buy"):
    return [
        "Program 6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P invoke [1]",
        f"Program log: Instruction: {instruction}",
        f"Program data: {base64.b64encode(data).decode()}",
    ]


class TradeEventDecodingTests(unittest.TestCase):
    def test_decode_trade_event(self):
        event = decode_trade_event(trade_bytes(), signature="sig1", slot=7, sequence=3)
        self.assertEqual(event.mint, base58.b58encode(MINT).decode())
        self.assertEqual(event.user, base58.b58encode(USER).decode())
        self.assertTrue(event.is_buy)
        self.assertEqual(event.sol, 2.0)
        self.assertAlmostEqual(event.price, 2.0 / 70_000_000)
        self.assertAlmostEqual(event.virtual_price, 32.0 / 1_000_000_000)
        self.assertEqual(event.blocktime, 1_700_000_000)
        self.assertEqual((event.signature, event.slot, event.sequence), ("sig1", 7, 3))

    def test_decode_rejects_other_payloads(self):
        self.assertIsNone(decode_trade_event(trade_bytes()[:-1]))
        self.assertIsNone(decode_trade_event(trade_bytes(sol=0)))
        self.assertIsNone(decode_trade_event(trade_bytes(timestamp=2**40)))


class PumpDataFeedTests(WorkspaceMixin, unittest.IsolatedAsyncioTestCase):
    def test_parse_logs_needs_trade_instruction(self):
        feed = PumpDataFeed("wss://example", self.logger)
        self.assertEqual(len(feed.parse_logs(logs_for(trade_bytes(is_buy=False), "Sell"), "sig1")), 1)
        self.assertEqual(feed.parse_logs(logs_for(trade_bytes(), "Create"), "sig1"), [])

    async def test_process_message_dispatches_events(self):
        received = []

        async def collect(event):
            received.append(event)

        feed = PumpDataFeed("wss://example", self.logger)
        feed.add_callback(collect)
        message = {
            "jsonrpc": "2.0",
            "method": "logsNotification",
            "params": {"result": {
                "context": {"slot": 99},
                "value": {"signature": "sig1", "err": None, "logs": logs_for(trade_bytes())},
            }},
        }
        await feed.process_message(json.dumps(message))
        failed = dict(message)
        failed["params"] = {"result": {"value": {"signature": "sig2", "err": {"x": 1}, "logs": logs_for(trade_bytes())}}}
        await feed.process_message(json.dumps(failed))
        await feed.process_message("not json")

        self.assertEqual([e.signature for e in received], ["sig1"])
        self.assertEqual(received[0].slot, 99)
        self.assertEqual(feed.message_health['processing_errors'], 1)


class ReplayDataFeedTests(WorkspaceMixin, unittest.IsolatedAsyncioTestCase):
    async def test_replay_feed_orders_by_time(self):
        path = self.tmp_path / "trades.csv"
        path.write_text(
            "timestamp,mint,sol_amount,token_amount,is_buy,user,virtual_sol_reserves,virtual_token_reserves,signature\n"
            "2024-05-01 12:00:05,MintA,0.5,1000,False,u2,31,1000000000,\n"
            "2024-05-01 12:00:00,MintA,1.5,3000,True,u1,30,1000000000,abc\n"
        )
        received = []

        async def collect(event):
            received.append(event)

        feed = ReplayDataFeed(str(path), self.logger)
        feed.add_callback(collect)
        await feed.start()

        self.assertEqual([e.user for e in received], ["u1", "u2"])
        first, second = received
        self.assertTrue(first.is_buy)
        self.assertFalse(second.is_buy)
        self.assertEqual(first.sol_amount, 1_500_000_000)
        self.assertEqual(first.token_amount, 3_000_000_000)
        self.assertEqual(first.signature, "abc")
        self.assertEqual(second.signature, "replay_2")
        self.assertEqual(first.real_sol_reserves, first.virtual_sol_reserves)
        self.assertEqual([e.sequence for e in received], [1, 2])

    def test_replay_feed_requires_columns(self):
        path = self.tmp_path / "bad.csv"
        path.write_text("timestamp,mint\n2024-05-01 12:00:00,MintA\n")
        with self.assertRaisesRegex(ValueError, "missing columns"):
            ReplayDataFeed(str(path), self.logger)


if __name__ == "__main__":
    unittest.main()
