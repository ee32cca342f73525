import json
from typing import Any, Dict, Literal

from pydantic import BaseModel

Trend = Literal["bullish", "bearish", "neutral"]


class MacdValues(BaseModel):
    value: float = 0.0
    signal: float = 0.0
    histogram: float = 0.0


class BollingerBands(BaseModel):
    upper: float = 0.0
    middle: float = 0.0
    lower: float = 0.0


class TechnicalIndicators(BaseModel):
    # Moving averages
    sma20: float = 0.0
    sma50: float = 0.0
    sma150: float = 0.0
    sma200: float = 0.0

    # Momentum
    rsi: float = 50.0
    macd: MacdValues = MacdValues()
    bollinger: BollingerBands = BollingerBands()

    # Levels
    support: float = 0.0
    resistance: float = 0.0

    trend: Trend = "neutral"
    volatility: float = 0.0

    @classmethod
    def neutral(cls) -> "TechnicalIndicators":
        """Indicator set used when there is not enough history."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert the model to a dictionary."""
        return {
            "sma20": self.sma20,
            "sma50": self.sma50,
            "sma150": self.sma150,
            "sma200": self.sma200,
            "rsi": self.rsi,
            "macd": {
                "value": self.macd.value,
                "signal": self.macd.signal,
                "histogram": self.macd.histogram,
            },
            "bollinger": {
                "upper": self.bollinger.upper,
                "middle": self.bollinger.middle,
                "lower": self.bollinger.lower,
            },
            "support": self.support,
            "resistance": self.resistance,
            "trend": self.trend,
            "volatility": self.volatility,
        }

    def to_json(self) -> str:
        """Convert the model to a JSON string."""
        return json.dumps(self.to_dict())
