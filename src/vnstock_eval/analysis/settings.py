"""Weights, thresholds and indicator configuration for stock evaluation."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BollingerSettings:
    period: int = 20
    std_dev_multiplier: float = 2.0


# Scoring variant and the wider long-horizon chart variant
DEFAULT_BOLLINGER = BollingerSettings()
CHART_BOLLINGER = BollingerSettings(period=30, std_dev_multiplier=3.0)


@dataclass(frozen=True)
class IndicatorSettings:
    ma_short_period: int = 10
    ma_long_period: int = 30
    bollinger: BollingerSettings = DEFAULT_BOLLINGER
    volume_avg_period: int = 10
    momentum_short_period: int = 5
    momentum_long_period: int = 10
    min_sessions: int = 30


@dataclass(frozen=True)
class ShortTermWeights:
    moving_average: int = 30
    moving_average_weak: int = 20
    bollinger: int = 25
    bollinger_weak: int = 15
    momentum: int = 20
    momentum_weak: int = 10
    volume: int = 15
    range_position: int = 10


@dataclass(frozen=True)
class ShortTermThresholds:
    """Percent values are in percent units (2.0 = 2%)."""

    ma_strong_gap_pct: float = 2.0
    bb_oversold: float = 0.2
    bb_overbought: float = 0.8
    bb_support: float = 0.4
    bb_resistance: float = 0.6
    momentum_short_pct: float = 3.0
    momentum_long_pct: float = 5.0
    volume_high: float = 1.5
    volume_low: float = 0.7
    range_bottom: float = 0.3
    range_top: float = 0.7


@dataclass(frozen=True)
class LongTermWeights:
    consensus: int = 30
    upside: int = 15
    pe: int = 20
    pb: int = 15
    roe: int = 20
    dividend: int = 10
    market_cap: int = 3
    free_float: int = 2

    @property
    def total(self) -> int:
        return (
            self.consensus
            + self.upside
            + self.pe
            + self.pb
            + self.roe
            + self.dividend
            + self.market_cap
            + self.free_float
        )


@dataclass(frozen=True)
class LongTermThresholds:
    """Ratios are compared in percent where noted (ROE 20.0 = 20%)."""

    consensus_buy_strong_pct: float = 60.0
    consensus_buy_pct: float = 40.0
    consensus_sell_pct: float = 40.0
    upside_strong_pct: float = 20.0
    upside_good_pct: float = 10.0
    downside_pct: float = -10.0
    pe_very_low: float = 10.0
    pe_reasonable_max: float = 20.0
    pe_high: float = 30.0
    pb_undervalued: float = 1.0
    pb_reasonable_max: float = 2.0
    pb_high: float = 3.0
    roe_excellent_pct: float = 20.0
    roe_good_pct: float = 15.0
    roe_average_pct: float = 10.0
    dividend_high_pct: float = 5.0
    dividend_good_pct: float = 3.0
    market_cap_large: float = 10_000_000_000_000  # 10 trillion VND
    market_cap_medium: float = 1_000_000_000_000  # 1 trillion VND
    free_float_high_pct: float = 30.0
    free_float_low_pct: float = 15.0


@dataclass(frozen=True)
class LongTermScores:
    """Points awarded per long-term band (bullish unless named bearish)."""

    consensus_strong: int = 30
    consensus_good: int = 20
    consensus_bearish: int = 20
    upside_strong: int = 15
    upside_good: int = 10
    upside_small: int = 5
    downside_bearish: int = 15
    pe_very_low: int = 20
    pe_reasonable: int = 12
    pe_high_bearish: int = 8
    pe_very_high_bearish: int = 20
    pe_negative_bearish: int = 16
    pb_undervalued: int = 15
    pb_reasonable: int = 8
    pb_high_bearish: int = 4
    pb_very_high_bearish: int = 15
    roe_excellent: int = 20
    roe_good: int = 12
    roe_average: int = 4
    roe_low_bearish: int = 8
    roe_negative_bearish: int = 20
    dividend_high: int = 10
    dividend_good: int = 7
    market_cap_large: int = 3
    market_cap_medium: int = 2
    free_float_high: int = 2
    free_float_low_bearish: int = 2


@dataclass(frozen=True)
class TradingSettings:
    buy_threshold: float = 15
    sell_threshold: float = -15
    # Cut-loss is 3.5% below the current price
    cut_loss_multiplier: float = 0.965
    min_fundamental_coverage_pct: float = 50.0
    low_coverage_damping: float = 0.7
    low_coverage_confidence_cap: float = 70.0


@dataclass(frozen=True)
class EvaluationSettings:
    indicators: IndicatorSettings = field(default_factory=IndicatorSettings)
    short_term_weights: ShortTermWeights = field(default_factory=ShortTermWeights)
    short_term_thresholds: ShortTermThresholds = field(default_factory=ShortTermThresholds)
    long_term_weights: LongTermWeights = field(default_factory=LongTermWeights)
    long_term_thresholds: LongTermThresholds = field(default_factory=LongTermThresholds)
    long_term_scores: LongTermScores = field(default_factory=LongTermScores)
    trading: TradingSettings = field(default_factory=TradingSettings)


DEFAULT_SETTINGS = EvaluationSettings()

# Exchange clock for bar dates and market sessions
VIETNAM_TZ = "Asia/Ho_Chi_Minh"

# Ratio codes read by the long-term evaluator
RATIO_PE = "PRICE_TO_EARNINGS"
RATIO_PB = "PRICE_TO_BOOK"
RATIO_ROE = "ROAE_TR_AVG5Q"
RATIO_ROA = "ROAA_TR_AVG5Q"
RATIO_DIVIDEND_YIELD = "DIVIDEND_YIELD"
RATIO_MARKET_CAP = "MARKETCAP"
RATIO_FREE_FLOAT = "FREEFLOAT"
RATIO_EPS = "EPS_TR"
RATIO_BVPS = "BVPS_CR"

RATIO_CODES: tuple[str, ...] = (
    RATIO_MARKET_CAP,
    RATIO_PE,
    RATIO_PB,
    RATIO_ROE,
    RATIO_ROA,
    RATIO_DIVIDEND_YIELD,
    RATIO_FREE_FLOAT,
    RATIO_EPS,
    RATIO_BVPS,
)
