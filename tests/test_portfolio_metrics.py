"""Unit tests for portfolio valuation metrics."""

import unittest

from portfolio_ai.analytics.portfolio import compute_portfolio_metrics, diversification_score
from portfolio_ai.domain.models import Holding


class TestPortfolioMetrics(unittest.TestCase):
    def setUp(self):
        self.holdings = [
            Holding(symbol="AAPL", shares=10, cost_per_share=100.0, sector="Technology"),
            Holding(symbol="MSFT", shares=5, cost_per_share=200.0, sector="Technology"),
            Holding(symbol="XOM", shares=20, cost_per_share=50.0, sector="Energy"),
        ]

    def test_totals_and_weights(self):
        metrics = compute_portfolio_metrics(self.holdings, {"AAPL": 150.0, "MSFT": 200.0, "XOM": 25.0})

        self.assertAlmostEqual(metrics.total_value, 3000.0)
        self.assertAlmostEqual(metrics.total_cost, 3000.0)
        self.assertAlmostEqual(metrics.total_gain_loss, 0.0)
        self.assertAlmostEqual(metrics.holdings[0].weight, 50.0)
        self.assertAlmostEqual(metrics.holdings[0].gain_loss_percent, 50.0)
        self.assertAlmostEqual(metrics.holdings[2].gain_loss_percent, -50.0)
        self.assertAlmostEqual(sum(row.weight for row in metrics.holdings), 100.0)
        self.assertAlmostEqual(metrics.sector_allocation["Technology"], 2500.0 / 3000.0 * 100)
        self.assertEqual(metrics.top_holding, "AAPL")
        self.assertAlmostEqual(metrics.top5_concentration, 100.0)

    def test_missing_price_valued_at_cost(self):
        metrics = compute_portfolio_metrics(self.holdings, {"AAPL": 150.0, "XOM": 50.0})

        msft = metrics.holdings[1]
        self.assertFalse(msft.price_is_live)
        self.assertEqual(msft.current_price, 200.0)
        self.assertEqual(msft.gain_loss, 0.0)
        self.assertTrue(metrics.holdings[0].price_is_live)

    def test_missing_cost_gives_zero_percent(self):
        metrics = compute_portfolio_metrics([Holding(symbol="NVDA", shares=2)], {"NVDA": 100.0})

        row = metrics.holdings[0]
        self.assertEqual(row.cost_basis, 0.0)
        self.assertEqual(row.gain_loss, 200.0)
        self.assertEqual(row.gain_loss_percent, 0.0)
        self.assertEqual(metrics.total_gain_loss_percent, 0.0)

    def test_empty_portfolio(self):
        metrics = compute_portfolio_metrics([], {})
        self.assertEqual(metrics.holdings_count, 0)
        self.assertIsNone(metrics.top_holding)

    def test_to_dict_shape(self):
        data = compute_portfolio_metrics(self.holdings, {"AAPL": 150.0}).to_dict()
        self.assertEqual(data["diversification"]["holdingsCount"], 3)
        self.assertEqual(data["concentration"]["topHoldingSymbol"], "AAPL")
        self.assertIn("priceIsLive", data["holdings"][0])

    def test_diversification_score(self):
        self.assertEqual(diversification_score(5), 25.0)
        self.assertEqual(diversification_score(40), 100.0)


if __name__ == "__main__":
    unittest.main()
