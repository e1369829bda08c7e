from dataclasses import dataclass, field
from datetime import time as dtime
from typing import Any, Dict, List, Mapping, Optional, Tuple
import math
import os

import base58
import yaml
from dotenv import load_dotenv

from core.exceptions import ConfigError
from core.types import sol_to_lamports

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


class _SettingsReader:
    """Typed access to raw settings; collects every problem instead of stopping at the first"""

    def __init__(self, values: Mapping[str, Any]):
        self.values = values
        self.errors: List[str] = []

    def _raw(self, key: str) -> Optional[Any]:
        value = self.values.get(key)
        if value is None:
            return None
        if isinstance(value, str):
            value = value.strip()
            if value == "":
                return None
        return value

    def str_(self, key: str, default: str = "") -> str:
        value = self._raw(key)
        return default if value is None else str(value)

    def int_(self, key: str, default: int, minimum: Optional[int] = 0) -> int:
        value = self._raw(key)
        if value is None:
            return default
        try:
            if isinstance(value, bool):
                raise ValueError
            parsed = int(str(value).replace("_", ""))
        except ValueError:
            self.errors.append(f"{key}: expected an integer, got {value!r}")
            return default
        if minimum is not None and parsed < minimum:
            self.errors.append(f"{key}: must be >= {minimum}, got {parsed}")
        return parsed

    def float_(self, key: str, default: float, minimum: Optional[float] = 0.0,
               maximum: Optional[float] = None) -> float:
        value = self._raw(key)
        if value is None:
            return default
        try:
            if isinstance(value, bool):
                raise ValueError
            parsed = float(str(value).replace("_", ""))
            if math.isnan(parsed):
                raise ValueError
        except ValueError:
            self.errors.append(f"{key}: expected a number, got {value!r}")
            return default
        if minimum is not None and parsed < minimum:
            self.errors.append(f"{key}: must be >= {minimum}, got {parsed}")
        if maximum is not None and parsed > maximum:
            self.errors.append(f"{key}: must be <= {maximum}, got {parsed}")
        return parsed

    def percent(self, key: str, default: float) -> float:
        return self.float_(key, default, minimum=0.0, maximum=100.0)

    def bool_(self, key: str, default: bool) -> bool:
        value = self._raw(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        self.errors.append(f"{key}: expected a boolean, got {value!r}")
        return default

    def time_(self, key: str, default: str) -> dtime:
        value = self._raw(key)
        text = default if value is None else str(value)
        parsed = parse_hhmm(text)
        if parsed is None:
            self.errors.append(f"{key}: expected HH:MM (00:00-23:59), got {text!r}")
            return parse_hhmm(default)
        return parsed

    def list_(self, key: str) -> List[str]:
        value = self._raw(key)
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            items = [str(v).strip() for v in value]
        else:
            items = [v.strip() for v in str(value).split(",")]
        return [v for v in items if v]


def parse_hhmm(text: str) -> Optional[dtime]:
    """Parse a strict 24h HH:MM string"""
    parts = text.split(":")
    if len(parts) != 2 or len(parts[0]) != 2 or len(parts[1]) != 2:
        return None
    if not (parts[0].isdigit() and parts[1].isdigit()):
        return None
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        return None
    return dtime(hours, minutes)


def is_valid_wallet_address(address: str) -> bool:
    try:
        return len(base58.b58decode(address)) == 32
    except ValueError:
        return False


def is_valid_private_key(key: str) -> bool:
    try:
        return len(base58.b58decode(key)) == 64
    except ValueError:
        return False


@dataclass(frozen=True)
class BasicTradingConfig:
    threshold_sell: int = 10_000_000_000     # lamports
    threshold_buy: int = 3_000_000_000       # lamports
    max_wait_time: int = 650                 # ms
    private_key: str = ""
    rpc_http: str = "https://api.mainnet-beta.solana.com"
    rpc_wss: str = "wss://api.mainnet-beta.solana.com"
    time_exceed: int = 30                    # seconds
    token_amount: float = 1.0                # SOL per buy
    unit_price: float = 0.001                # SOL of priority fee per transaction
    unit_limit: int = 150_000                # compute units
    downing_percent: float = 50.0
    sell_all_tokens: bool = False

    @property
    def compute_unit_price(self) -> int:
        """UNIT_PRICE spread over UNIT_LIMIT, in micro-lamports per compute unit"""
        if self.unit_limit <= 0:
            return 0
        return int(self.unit_price * 1_000_000_000 * 1_000_000 / self.unit_limit)


@dataclass(frozen=True)
class YellowstoneConfig:
    grpc_http: str = ""
    grpc_token: str = ""
    ping_interval: int = 30
    reconnect_delay: int = 5
    max_retries: int = 10


@dataclass(frozen=True)
class JitoConfig:
    block_engine_url: str = ""
    priority_fee: int = 1000
    tip_value: int = 1000
    use_jito: bool = False


@dataclass(frozen=True)
class ZeroSlotConfig:
    url: str = ""
    tip_value: int = 1000


@dataclass(frozen=True)
class NozomiConfig:
    url: str = ""
    tip_value: int = 1000


@dataclass(frozen=True)
class BloxRouteConfig:
    network: str = "mainnet"
    region: str = "us-east"
    auth_header: str = ""
    tip_value: int = 1000


@dataclass(frozen=True)
class FilterConfig:
    min_market_cap: float = 8.0
    max_market_cap: float = 15.0
    market_cap_enabled: bool = True
    min_volume: float = 5.0
    max_volume: float = 12.0
    volume_enabled: bool = True
    min_number_of_buy_sell: int = 50
    max_number_of_buy_sell: int = 2000
    buy_sell_count_enabled: bool = True
    sol_invested: float = 1.0
    sol_invested_max: float = math.inf
    sol_invested_enabled: bool = True
    min_launcher_sol_balance: float = 0.0
    max_launcher_sol_balance: float = 1.0
    launcher_sol_enabled: bool = True
    dev_buy_enabled: bool = True


@dataclass(frozen=True)
class CopyTradingConfig:
    enabled: bool = False
    buy_sell_percent: float = 100.0
    target_wallets: Tuple[str, ...] = ()
    multi_target_mode: bool = False
    mc_threshold_to_buy: float = 1_000_000.0
    mc_threshold_to_follow: float = 500_000.0


@dataclass(frozen=True)
class PrivateLogicConfig:
    enabled: bool = False
    # (percent of remaining, delay after entry in ms) for stages 1..7
    stages: Tuple[Tuple[float, int], ...] = (
        (10.0, 1000), (20.0, 2000), (30.0, 3000), (40.0, 4000),
        (50.0, 5000), (60.0, 6000), (70.0, 7000),
    )


@dataclass(frozen=True)
class InverseBuyConfig:
    enabled: bool = False
    buy_amount: float = 0.1


@dataclass(frozen=True)
class TimerConfig:
    enabled: bool = False
    start_time: dtime = dtime(0, 0)
    stop_time: dtime = dtime(23, 59)
    auto_sell_on_stop: bool = False


@dataclass(frozen=True)
class ModeConfig:
    simulation_mode: bool = False
    live_mode: bool = True
    paper_trading: bool = False

    @property
    def simulated(self) -> bool:
        return self.simulation_mode or self.paper_trading or not self.live_mode


@dataclass(frozen=True)
class AdvancedConfig:
    limit_wait_time: int = 30_000            # ms
    limit_buy_amount_in_limit_wait_time: float = 0.5
    review_cycle_duration: int = 120_000     # ms
    time_delta_threshold: int = 300          # seconds
    price_delta_threshold: float = 5.0       # percent
    min_buy_confidence: float = 0.7
    min_sell_confidence: float = 0.6
    daily_buy_budget: float = 10.0           # SOL


@dataclass(frozen=True)
class LegacyConfig:
    slippage: int = 100                      # basis points
    counter: int = 10
    min_dev_buy: float = 5.0
    max_dev_buy: float = 30.0
    bundle_check: bool = True
    take_profit: bool = True
    take_profit_percent: float = 50.0
    stop_loss: bool = True
    stop_loss_percent: float = 30.0
    min_last_time: int = 300_000             # ms


@dataclass(frozen=True)
class TelegramConfig:
    bot_token: str = ""
    chat_id: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)


@dataclass(frozen=True)
class RuntimeConfig:
    event_queue_size: int = 10_000
    event_workers: int = 8
    venue_max_in_flight: int = 16
    log_dir: str = "data/logs"
    log_console: bool = True
    log_level: str = "INFO"
    trade_journal_path: str = "data/trades/trades.csv"
    replay_data_path: str = ""


@dataclass(frozen=True)
class BotConfig:
    basic: BasicTradingConfig = field(default_factory=BasicTradingConfig)
    yellowstone: YellowstoneConfig = field(default_factory=YellowstoneConfig)
    jito: JitoConfig = field(default_factory=JitoConfig)
    zero_slot: ZeroSlotConfig = field(default_factory=ZeroSlotConfig)
    nozomi: NozomiConfig = field(default_factory=NozomiConfig)
    blox_route: BloxRouteConfig = field(default_factory=BloxRouteConfig)
    filters: FilterConfig = field(default_factory=FilterConfig)
    copy_trading: CopyTradingConfig = field(default_factory=CopyTradingConfig)
    private_logic: PrivateLogicConfig = field(default_factory=PrivateLogicConfig)
    inverse_buy: InverseBuyConfig = field(default_factory=InverseBuyConfig)
    timer: TimerConfig = field(default_factory=TimerConfig)
    mode: ModeConfig = field(default_factory=ModeConfig)
    advanced: AdvancedConfig = field(default_factory=AdvancedConfig)
    legacy: LegacyConfig = field(default_factory=LegacyConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)

    @property
    def simulated(self) -> bool:
        return self.mode.simulated

    @property
    def exit_strategy(self) -> str:
        return "staged" if self.private_logic.enabled else "tp_sl"

    @classmethod
    def load(cls, env_file: Optional[str] = None, yaml_path: Optional[str] = None,
             environ: Optional[Mapping[str, str]] = None) -> "BotConfig":
        """Load settings: defaults < YAML file < environment (.env included)"""
        values: Dict[str, Any] = {}
        if yaml_path and os.path.exists(yaml_path):
            with open(yaml_path, 'r') as f:
                values.update(yaml.safe_load(f) or {})
        if environ is None:
            load_dotenv(env_file)
            environ = os.environ
        values.update(environ)
        return cls.from_mapping(values)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "BotConfig":
        r = _SettingsReader(values)

        basic = BasicTradingConfig(
            threshold_sell=r.int_("THRESHOLD_SELL", BasicTradingConfig.threshold_sell),
            threshold_buy=r.int_("THRESHOLD_BUY", BasicTradingConfig.threshold_buy),
            max_wait_time=r.int_("MAX_WAIT_TIME", BasicTradingConfig.max_wait_time, minimum=1),
            private_key=r.str_("PRIVATE_KEY"),
            rpc_http=r.str_("RPC_HTTP", BasicTradingConfig.rpc_http),
            rpc_wss=r.str_("RPC_WSS", BasicTradingConfig.rpc_wss),
            time_exceed=r.int_("TIME_EXCEED", BasicTradingConfig.time_exceed),
            token_amount=r.float_("TOKEN_AMOUNT", BasicTradingConfig.token_amount),
            unit_price=r.float_("UNIT_PRICE", BasicTradingConfig.unit_price),
            unit_limit=r.int_("UNIT_LIMIT", BasicTradingConfig.unit_limit),
            downing_percent=r.percent("DOWNING_PERCENT", BasicTradingConfig.downing_percent),
            sell_all_tokens=r.bool_("SELL_ALL_TOKENS", BasicTradingConfig.sell_all_tokens),
        )
        yellowstone = YellowstoneConfig(
            grpc_http=r.str_("YELLOWSTONE_GRPC_HTTP"),
            grpc_token=r.str_("YELLOWSTONE_GRPC_TOKEN"),
            ping_interval=r.int_("YELLOWSTONE_PING_INTERVAL", YellowstoneConfig.ping_interval, minimum=1),
            reconnect_delay=r.int_("YELLOWSTONE_RECONNECT_DELAY", YellowstoneConfig.reconnect_delay),
            max_retries=r.int_("YELLOWSTONE_MAX_RETRIES", YellowstoneConfig.max_retries),
        )
        jito = JitoConfig(
            block_engine_url=r.str_("JITO_BLOCK_ENGINE_URL"),
            priority_fee=r.int_("JITO_PRIORITY_FEE", JitoConfig.priority_fee),
            tip_value=r.int_("JITO_TIP_VALUE", JitoConfig.tip_value),
            use_jito=r.bool_("USE_JITO", JitoConfig.use_jito),
        )
        zero_slot = ZeroSlotConfig(
            url=r.str_("ZERO_SLOT_URL"),
            tip_value=r.int_("ZERO_SLOT_TIP_VALUE", ZeroSlotConfig.tip_value),
        )
        nozomi = NozomiConfig(
            url=r.str_("NOZOMI_URL"),
            tip_value=r.int_("NOZOMI_TIP_VALUE", NozomiConfig.tip_value),
        )
        blox_route = BloxRouteConfig(
            network=r.str_("NETWORK", BloxRouteConfig.network),
            region=r.str_("REGION", BloxRouteConfig.region),
            auth_header=r.str_("AUTH_HEADER"),
            tip_value=r.int_("BLOXROUTE_TIP_VALUE", BloxRouteConfig.tip_value),
        )
        filters = FilterConfig(
            min_market_cap=r.float_("MIN_MARKET_CAP", FilterConfig.min_market_cap),
            max_market_cap=r.float_("MAX_MARKET_CAP", FilterConfig.max_market_cap),
            market_cap_enabled=r.bool_("MARKET_CAP_ENABLED", FilterConfig.market_cap_enabled),
            min_volume=r.float_("MIN_VOLUME", FilterConfig.min_volume),
            max_volume=r.float_("MAX_VOLUME", FilterConfig.max_volume),
            volume_enabled=r.bool_("VOLUME_ENABLED", FilterConfig.volume_enabled),
            min_number_of_buy_sell=r.int_("MIN_NUMBER_OF_BUY_SELL", FilterConfig.min_number_of_buy_sell),
            max_number_of_buy_sell=r.int_("MAX_NUMBER_OF_BUY_SELL", FilterConfig.max_number_of_buy_sell),
            buy_sell_count_enabled=r.bool_("BUY_SELL_COUNT_ENABLED", FilterConfig.buy_sell_count_enabled),
            sol_invested=r.float_("SOL_INVESTED", FilterConfig.sol_invested),
            sol_invested_max=r.float_("SOL_INVESTED_MAX", FilterConfig.sol_invested_max),
            sol_invested_enabled=r.bool_("SOL_INVESTED_ENABLED", FilterConfig.sol_invested_enabled),
            min_launcher_sol_balance=r.float_("MIN_LAUNCHER_SOL_BALANCE", FilterConfig.min_launcher_sol_balance),
            max_launcher_sol_balance=r.float_("MAX_LAUNCHER_SOL_BALANCE", FilterConfig.max_launcher_sol_balance),
            launcher_sol_enabled=r.bool_("LAUNCHER_SOL_ENABLED", FilterConfig.launcher_sol_enabled),
            dev_buy_enabled=r.bool_("DEV_BUY_ENABLED", FilterConfig.dev_buy_enabled),
        )
        copy_trading = CopyTradingConfig(
            enabled=r.bool_("COPY_TRADING_ENABLED", CopyTradingConfig.enabled),
            buy_sell_percent=r.percent("BUY_SELL_PERCENT", CopyTradingConfig.buy_sell_percent),
            target_wallets=tuple(r.list_("TARGET_WALLETS")),
            multi_target_mode=r.bool_("MULTI_TARGET_MODE", CopyTradingConfig.multi_target_mode),
            mc_threshold_to_buy=r.float_("MC_THRESHOLD_TO_BUY", CopyTradingConfig.mc_threshold_to_buy),
            mc_threshold_to_follow=r.float_("MC_THRESHOLD_TO_FOLLOW", CopyTradingConfig.mc_threshold_to_follow),
        )
        default_stages = PrivateLogicConfig().stages
        private_logic = PrivateLogicConfig(
            enabled=r.bool_("PRIVATE_LOGIC_ENABLED", PrivateLogicConfig.enabled),
            stages=tuple(
                (
                    r.percent(f"PL_STAGE_{n}_PERCENT", default_stages[n - 1][0]),
                    r.int_(f"PL_STAGE_{n}_DELAY", default_stages[n - 1][1]),
                )
                for n in range(1, 8)
            ),
        )
        inverse_buy = InverseBuyConfig(
            enabled=r.bool_("INVERSE_BUY_ENABLED", InverseBuyConfig.enabled),
            buy_amount=r.float_("INVERSE_BUY_AMOUNT", InverseBuyConfig.buy_amount),
        )
        timer = TimerConfig(
            enabled=r.bool_("TIMER_ENABLED", TimerConfig.enabled),
            start_time=r.time_("BOT_START_TIME", "00:00"),
            stop_time=r.time_("BOT_STOP_TIME", "23:59"),
            auto_sell_on_stop=r.bool_("AUTO_SELL_ON_STOP", TimerConfig.auto_sell_on_stop),
        )
        mode = ModeConfig(
            simulation_mode=r.bool_("SIMULATION_MODE", ModeConfig.simulation_mode),
            live_mode=r.bool_("LIVE_MODE", ModeConfig.live_mode),
            paper_trading=r.bool_("PAPER_TRADING", ModeConfig.paper_trading),
        )
        advanced = AdvancedConfig(
            limit_wait_time=r.int_("LIMIT_WAIT_TIME", AdvancedConfig.limit_wait_time, minimum=1),
            limit_buy_amount_in_limit_wait_time=r.float_(
                "LIMIT_BUY_AMOUNT_IN_LIMIT_WAIT_TIME", AdvancedConfig.limit_buy_amount_in_limit_wait_time),
            review_cycle_duration=r.int_("REVIEW_CYCLE_DURATION", AdvancedConfig.review_cycle_duration, minimum=1),
            time_delta_threshold=r.int_("TIME_DELTA_THRESHOLD", AdvancedConfig.time_delta_threshold),
            price_delta_threshold=r.float_("PRICE_DELTA_THRESHOLD", AdvancedConfig.price_delta_threshold),
            min_buy_confidence=r.float_("MIN_BUY_CONFIDENCE", AdvancedConfig.min_buy_confidence, maximum=1.0),
            min_sell_confidence=r.float_("MIN_SELL_CONFIDENCE", AdvancedConfig.min_sell_confidence, maximum=1.0),
            daily_buy_budget=r.float_("DAILY_BUY_BUDGET", AdvancedConfig.daily_buy_budget),
        )
        legacy = LegacyConfig(
            slippage=r.int_("SLIPPAGE", LegacyConfig.slippage),
            counter=r.int_("COUNTER", LegacyConfig.counter, minimum=1),
            min_dev_buy=r.float_("MIN_DEV_BUY", LegacyConfig.min_dev_buy),
            max_dev_buy=r.float_("MAX_DEV_BUY", LegacyConfig.max_dev_buy),
            bundle_check=r.bool_("BUNDLE_CHECK", LegacyConfig.bundle_check),
            take_profit=r.bool_("TAKE_PROFIT", LegacyConfig.take_profit),
            take_profit_percent=r.float_("TAKE_PROFIT_PERCENT", LegacyConfig.take_profit_percent),
            stop_loss=r.bool_("STOP_LOSS", LegacyConfig.stop_loss),
            stop_loss_percent=r.percent("STOP_LOSS_PERCENT", LegacyConfig.stop_loss_percent),
            min_last_time=r.int_("MIN_LAST_TIME", LegacyConfig.min_last_time),
        )
        telegram = TelegramConfig(
            bot_token=r.str_("TELEGRAM_BOT_TOKEN"),
            chat_id=r.str_("TELEGRAM_CHAT_ID"),
        )
        runtime = RuntimeConfig(
            event_queue_size=r.int_("EVENT_QUEUE_SIZE", RuntimeConfig.event_queue_size, minimum=1),
            event_workers=r.int_("EVENT_WORKERS", RuntimeConfig.event_workers, minimum=1),
            venue_max_in_flight=r.int_("VENUE_MAX_IN_FLIGHT", RuntimeConfig.venue_max_in_flight, minimum=1),
            log_dir=r.str_("LOG_DIR", RuntimeConfig.log_dir),
            log_console=r.bool_("LOG_CONSOLE", RuntimeConfig.log_console),
            log_level=r.str_("LOG_LEVEL", RuntimeConfig.log_level),
            trade_journal_path=r.str_("TRADE_JOURNAL_PATH", RuntimeConfig.trade_journal_path),
            replay_data_path=r.str_("REPLAY_DATA_PATH"),
        )

        config = cls(
            basic=basic, yellowstone=yellowstone, jito=jito, zero_slot=zero_slot,
            nozomi=nozomi, blox_route=blox_route, filters=filters,
            copy_trading=copy_trading, private_logic=private_logic,
            inverse_buy=inverse_buy, timer=timer, mode=mode, advanced=advanced,
            legacy=legacy, telegram=telegram, runtime=runtime,
        )
        errors = r.errors + config.validate()
        if errors:
            raise ConfigError(errors)
        return config

    def validate(self) -> List[str]:
        """Cross-field checks; returns a list of problems"""
        errors = []
        if self.basic.threshold_buy >= self.basic.threshold_sell:
            errors.append(
                f"THRESHOLD_BUY ({self.basic.threshold_buy}) must be less than "
                f"THRESHOLD_SELL ({self.basic.threshold_sell})"
            )
        f = self.filters
        ranges = [
            ("MARKET_CAP", f.min_market_cap, f.max_market_cap),
            ("VOLUME", f.min_volume, f.max_volume),
            ("NUMBER_OF_BUY_SELL", f.min_number_of_buy_sell, f.max_number_of_buy_sell),
            ("SOL_INVESTED", f.sol_invested, f.sol_invested_max),
            ("LAUNCHER_SOL_BALANCE", f.min_launcher_sol_balance, f.max_launcher_sol_balance),
            ("DEV_BUY", self.legacy.min_dev_buy, self.legacy.max_dev_buy),
        ]
        for name, low, high in ranges:
            if low > high:
                errors.append(f"{name}: min ({low}) cannot be greater than max ({high})")
        amounts = [
            ("TOKEN_AMOUNT", self.basic.token_amount),
            ("LIMIT_BUY_AMOUNT_IN_LIMIT_WAIT_TIME", self.advanced.limit_buy_amount_in_limit_wait_time),
        ]
        if self.inverse_buy.enabled:
            amounts.append(("INVERSE_BUY_AMOUNT", self.inverse_buy.buy_amount))
        for name, amount in amounts:
            if sol_to_lamports(amount) <= 0:
                errors.append(f"{name}: must be at least one lamport, got {amount}")
        for wallet in self.copy_trading.target_wallets:
            if not is_valid_wallet_address(wallet):
                errors.append(f"TARGET_WALLETS: invalid wallet address {wallet!r}")
        if self.copy_trading.enabled and not self.copy_trading.target_wallets:
            errors.append("COPY_TRADING_ENABLED is set but TARGET_WALLETS is empty")
        if not self.simulated:
            if not self.basic.private_key:
                errors.append("PRIVATE_KEY is required when trading live")
            elif not is_valid_private_key(self.basic.private_key):
                errors.append("PRIVATE_KEY: expected a base58 encoded 64-byte keypair")
        return errors

    def summary(self) -> List[str]:
        """One line per settings group, for the startup log"""
        b, t = self.basic, self.timer
        venues = [name for name, on in (
            ("jito", self.jito.use_jito),
            ("zeroslot", bool(self.zero_slot.url)),
            ("nozomi", bool(self.nozomi.url)),
            ("bloxroute", bool(self.blox_route.auth_header)),
        ) if on]
        return [
            f"Basic trading: buy {b.token_amount} SOL, thresholds "
            f"{b.threshold_buy / 1e9:.2f}-{b.threshold_sell / 1e9:.2f} SOL, max wait {b.max_wait_time}ms",
            f"Venues: {', '.join(venues) if venues else 'direct RPC only'}",
            f"Filters: MC {self.filters.min_market_cap}K-{self.filters.max_market_cap}K, "
            f"volume {self.filters.min_volume}K-{self.filters.max_volume}K",
            f"Copy trading: {'enabled' if self.copy_trading.enabled else 'disabled'} "
            f"({len(self.copy_trading.target_wallets)} targets)",
            f"Exit strategy: {self.exit_strategy}",
            f"Inverse buy: {'enabled' if self.inverse_buy.enabled else 'disabled'}",
            f"Timer: {t.start_time:%H:%M}-{t.stop_time:%H:%M}" if t.enabled else "Timer: disabled",
            f"Mode: {'simulation' if self.simulated else 'live'}",
            f"Budget: {self.advanced.daily_buy_budget} SOL/day, "
            f"buy confidence {self.advanced.min_buy_confidence:.0%}",
        ]
