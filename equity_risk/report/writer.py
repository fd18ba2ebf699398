"""
Report writer: renders a built Report to HTML and CSV artifacts.
"""

from pathlib import Path
from typing import List, Tuple, Union
import html
import logging

import pandas as pd
import plotly.graph_objects as go

from equity_risk.data.price_client import export_csv
from equity_risk.report import charts
from equity_risk.report.builder import Report
from equity_risk.risk import VolatilityModelFitter

logger = logging.getLogger(__name__)


class ReportWriter:
    """
    Writes report.html plus CSV exports into an output directory.

    Files written:
        report.html            tables and interactive charts
        prices.csv, returns.csv
        summary_statistics.csv, arima.csv, model_comparison.csv,
        var.csv, failures.csv (only when a stage failed)
    """

    def __init__(self, title: str = "Equity Volatility & VaR Report"):
        self.title = title

    def figures(self, report: Report, prices: pd.DataFrame) -> List[Tuple[str, go.Figure]]:
        """Build (section heading, figure) pairs in report order."""
        figures = [("Prices", charts.price_chart(prices))]

        for symbol, analysis in report.analyses.items():
            if analysis.returns is None:
                continue
            figures.append((f"{symbol} returns", charts.returns_chart(
                analysis.returns, title=f"{symbol} Daily Log Returns"
            )))
            if analysis.forecast is not None:
                figures.append((f"{symbol} forecast", charts.forecast_chart(
                    analysis.returns, analysis.forecast
                )))
            if analysis.volatility_fits or analysis.rolling_volatility is not None:
                figures.append((f"{symbol} volatility", charts.volatility_chart(
                    list(analysis.volatility_fits),
                    rolling=analysis.rolling_volatility,
                    title=f"{symbol} Conditional vs Rolling Volatility"
                )))
            if analysis.volatility_fits:
                table = VolatilityModelFitter.comparison_table(analysis.volatility_fits)
                figures.append((f"{symbol} model comparison", charts.aic_comparison_chart(
                    table, title=f"{symbol} Model Comparison (AIC)"
                )))
            if analysis.var_backtest is not None:
                figures.append((f"{symbol} VaR", charts.var_violation_chart(
                    analysis.returns, analysis.var_backtest
                )))

        var_summary = report.var_summary()
        if not var_summary.empty:
            figures.append(("VaR coverage", charts.var_summary_chart(var_summary)))

        return figures

    def render_html(self, report: Report, prices: pd.DataFrame) -> str:
        """Render the full report as a standalone HTML document."""
        parts = [
            "<!DOCTYPE html>",
            "<html><head><meta charset='utf-8'>",
            f"<title>{html.escape(self.title)}</title>",
            "</head><body>",
            f"<h1>{html.escape(self.title)}</h1>",
            f"<p>Forecast horizon: {report.horizon} days &middot; "
            f"rolling window: {report.window} &middot; VaR alpha: {report.alpha:.2%}</p>",
        ]

        if report.failures:
            parts.append("<h2>Failed stages</h2>")
            parts.append(report.failure_table().to_html(index=False, escape=True))

        sections = [
            ("Return statistics", report.summary_statistics()),
            ("ARIMA models", report.arima_summary()),
            ("Volatility model comparison", report.model_comparison()),
            ("Value at Risk", report.var_summary()),
        ]
        for heading, table in sections:
            if table.empty:
                continue
            parts.append(f"<h2>{html.escape(heading)}</h2>")
            parts.append(table.to_html(index=False, float_format=lambda v: f"{v:.6g}"))

        include_js = "cdn"
        for heading, fig in self.figures(report, prices):
            parts.append(f"<h2>{html.escape(heading)}</h2>")
            parts.append(fig.to_html(full_html=False, include_plotlyjs=include_js))
            include_js = False

        parts.append("</body></html>")
        return "\n".join(parts)

    def write(
        self,
        report: Report,
        prices: pd.DataFrame,
        output_dir: Union[str, Path]
    ) -> Path:
        """
        Write all report artifacts.

        Returns:
            Path to report.html.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        export_csv(prices, output_dir / "prices.csv")

        returns = pd.DataFrame({
            symbol: analysis.returns
            for symbol, analysis in report.analyses.items()
            if analysis.returns is not None
        })
        if not returns.empty:
            export_csv(returns, output_dir / "returns.csv")

        tables = {
            "summary_statistics.csv": report.summary_statistics(),
            "arima.csv": report.arima_summary(),
            "model_comparison.csv": report.model_comparison(),
            "var.csv": report.var_summary(),
        }
        if report.failures:
            tables["failures.csv"] = report.failure_table()

        for filename, table in tables.items():
            if not table.empty:
                table.to_csv(output_dir / filename, index=False)

        html_path = output_dir / "report.html"
        html_path.write_text(self.render_html(report, prices), encoding="utf-8")
        logger.info(f"Report written to {html_path}")

        return html_path
