"""Portfolio valuation, allocation and concentration metrics."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..domain.models import Holding

logger = logging.getLogger(__name__)

TOP_N_CONCENTRATION = 5
DIVERSIFIED_HOLDINGS_COUNT = 20


@dataclass
class HoldingMetrics:
    symbol: str
    name: str
    shares: float
    sector: str
    current_price: float
    price_is_live: bool
    current_value: float
    cost_basis: float
    gain_loss: float
    gain_loss_percent: float
    weight: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "shares": self.shares,
            "sector": self.sector,
            "currentPrice": self.current_price,
            "priceIsLive": self.price_is_live,
            "currentValue": self.current_value,
            "costBasis": self.cost_basis,
            "gainLoss": self.gain_loss,
            "gainLossPercent": self.gain_loss_percent,
            "weight": self.weight,
        }


@dataclass
class PortfolioMetrics:
    total_value: float = 0.0
    total_cost: float = 0.0
    total_gain_loss: float = 0.0
    total_gain_loss_percent: float = 0.0
    holdings: List[HoldingMetrics] = field(default_factory=list)
    sector_allocation: Dict[str, float] = field(default_factory=dict)
    top5_concentration: float = 0.0
    top_holding_weight: float = 0.0
    top_holding: Optional[str] = None
    diversification_score: float = 0.0

    @property
    def holdings_count(self) -> int:
        return len(self.holdings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalValue": self.total_value,
            "totalCost": self.total_cost,
            "totalGainLoss": self.total_gain_loss,
            "totalGainLossPercent": self.total_gain_loss_percent,
            "holdings": [holding.to_dict() for holding in self.holdings],
            "sectorAllocation": self.sector_allocation,
            "concentration": {
                "top5": self.top5_concentration,
                "topHolding": self.top_holding_weight,
                "topHoldingSymbol": self.top_holding,
            },
            "diversification": {
                "score": self.diversification_score,
                "holdingsCount": self.holdings_count,
            },
        }


def diversification_score(holdings_count: int) -> float:
    """More holdings score higher, capped at 100 from 20 holdings up."""
    return min(100.0, holdings_count / DIVERSIFIED_HOLDINGS_COUNT * 100)


def compute_portfolio_metrics(
    holdings: Sequence[Holding],
    prices: Mapping[str, Optional[float]],
) -> PortfolioMetrics:
    """
    Value a portfolio against current prices.

    A holding without a live price is valued at its cost per share, so its
    gain/loss is zero rather than the whole position being dropped.

    Args:
        holdings: Positions supplied by the caller
        prices: Live price per symbol; missing or None means unavailable

    Returns:
        PortfolioMetrics with per-holding weights and portfolio totals
    """
    if not holdings:
        return PortfolioMetrics()

    rows: List[HoldingMetrics] = []
    for holding in holdings:
        live_price = prices.get(holding.symbol)
        cost_per_share = holding.cost_per_share or 0.0
        price = live_price if live_price is not None else cost_per_share

        current_value = price * holding.shares
        cost_basis = cost_per_share * holding.shares
        gain_loss = current_value - cost_basis

        rows.append(
            HoldingMetrics(
                symbol=holding.symbol,
                name=holding.name or holding.symbol,
                shares=holding.shares,
                sector=holding.sector or "Unknown",
                current_price=price,
                price_is_live=live_price is not None,
                current_value=current_value,
                cost_basis=cost_basis,
                gain_loss=gain_loss,
                gain_loss_percent=(gain_loss / cost_basis * 100) if cost_basis else 0.0,
            )
        )

    total_value = sum(row.current_value for row in rows)
    total_cost = sum(row.cost_basis for row in rows)
    total_gain_loss = sum(row.gain_loss for row in rows)

    sector_values: Dict[str, float] = {}
    for row in rows:
        row.weight = (row.current_value / total_value * 100) if total_value > 0 else 0.0
        sector_values[row.sector] = sector_values.get(row.sector, 0.0) + row.current_value

    sector_allocation = {
        sector: (value / total_value * 100) if total_value > 0 else 0.0
        for sector, value in sector_values.items()
    }

    ranked = sorted(rows, key=lambda row: row.weight, reverse=True)

    return PortfolioMetrics(
        total_value=total_value,
        total_cost=total_cost,
        total_gain_loss=total_gain_loss,
        total_gain_loss_percent=(total_gain_loss / total_cost * 100) if total_cost > 0 else 0.0,
        holdings=rows,
        sector_allocation=sector_allocation,
        top5_concentration=sum(row.weight for row in ranked[:TOP_N_CONCENTRATION]),
        top_holding_weight=ranked[0].weight,
        top_holding=ranked[0].symbol,
        diversification_score=diversification_score(len(rows)),
    )
