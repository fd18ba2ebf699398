"""
Plotly chart builders for the volatility report.

Provides chart functions for:
- Prices and log returns
- ARIMA forecasts with confidence bands
- Conditional vs rolling volatility
- VaR thresholds and violations
"""

from typing import Optional, List

import pandas as pd
import plotly.graph_objects as go

from equity_risk.forecasting import ForecastResult
from equity_risk.risk import VaRBacktestResult, VolatilityFit


# =============================================================================
# Color Schemes
# =============================================================================

COLORS = {
    'primary': '#2196F3',      # Blue
    'secondary': '#673AB7',    # Purple
    'warning': '#FF9800',      # Orange
    'violation': '#FF1744',    # Red
    'neutral': '#9E9E9E',      # Gray
    'band': 'rgba(33,150,243,0.2)',
}

MODEL_COLORS = ['#2196F3', '#673AB7', '#00C853', '#FF9800', '#795548']


def _empty_figure(title: str, height: int) -> go.Figure:
    fig = go.Figure()
    fig.add_annotation(
        text="No data available",
        xref="paper", yref="paper",
        x=0.5, y=0.5, showarrow=False
    )
    fig.update_layout(title=title, height=height)
    return fig


# =============================================================================
# Price & Return Charts
# =============================================================================

def price_chart(
    prices: pd.DataFrame,
    title: str = 'Adjusted Close Prices',
    height: int = 400
) -> go.Figure:
    """
    Create a line chart of adjusted close prices, one trace per symbol.

    Args:
        prices: DataFrame with symbols as columns and dates as index.
        title: Chart title.
        height: Chart height in pixels.

    Returns:
        Plotly Figure object.
    """
    if prices.empty:
        return _empty_figure(title, height)

    fig = go.Figure()
    for i, symbol in enumerate(prices.columns):
        series = prices[symbol].dropna()
        fig.add_trace(go.Scatter(
            x=series.index,
            y=series.values,
            mode='lines',
            name=str(symbol),
            line=dict(color=MODEL_COLORS[i % len(MODEL_COLORS)], width=1.5)
        ))

    fig.update_layout(
        title=title,
        xaxis_title="Date",
        yaxis_title="Price",
        height=height,
        hovermode='x unified',
        template='plotly_white'
    )

    return fig


def returns_chart(
    returns: pd.Series,
    title: str = 'Daily Log Returns',
    height: int = 350
) -> go.Figure:
    """Create a line chart of log returns with a zero line."""
    if returns.empty:
        return _empty_figure(title, height)

    fig = go.Figure(go.Scatter(
        x=returns.index,
        y=returns.values,
        mode='lines',
        name='Log return',
        line=dict(color=COLORS['primary'], width=1)
    ))

    fig.add_hline(y=0, line_dash="dash", line_color="gray", opacity=0.5)

    fig.update_layout(
        title=title,
        xaxis_title="Date",
        yaxis_title="Log Return",
        yaxis=dict(tickformat='.1%'),
        height=height,
        template='plotly_white'
    )

    return fig


# =============================================================================
# Forecast Charts
# =============================================================================

def forecast_chart(
    returns: pd.Series,
    forecast: ForecastResult,
    history: int = 120,
    title: Optional[str] = None,
    height: int = 400
) -> go.Figure:
    """
    Create a chart of recent returns followed by the ARIMA forecast band.

    Args:
        returns: Historical return series.
        forecast: ForecastResult to draw.
        history: Number of trailing observations shown before the forecast.
        title: Chart title (defaults to the model label).
        height: Chart height.

    Returns:
        Plotly Figure object.
    """
    title = title or f'{forecast.spec.label} Forecast ({forecast.horizon} days)'
    frame = forecast.frame

    fig = go.Figure()

    recent = returns.iloc[-history:]
    fig.add_trace(go.Scatter(
        x=recent.index,
        y=recent.values,
        mode='lines',
        name='Observed',
        line=dict(color=COLORS['neutral'], width=1)
    ))

    # Confidence band: upper edge then lower edge filled back to it
    fig.add_trace(go.Scatter(
        x=frame.index,
        y=frame['upper'],
        mode='lines',
        line=dict(width=0),
        showlegend=False,
        hoverinfo='skip'
    ))
    fig.add_trace(go.Scatter(
        x=frame.index,
        y=frame['lower'],
        mode='lines',
        line=dict(width=0),
        fill='tonexty',
        fillcolor=COLORS['band'],
        name=f'{forecast.confidence:.0%} interval'
    ))
    fig.add_trace(go.Scatter(
        x=frame.index,
        y=frame['forecast'],
        mode='lines+markers',
        name='Forecast',
        line=dict(color=COLORS['primary'], width=2),
        marker=dict(size=4)
    ))

    fig.update_layout(
        title=title,
        xaxis_title="Date",
        yaxis_title="Log Return",
        height=height,
        hovermode='x unified',
        template='plotly_white'
    )

    return fig


# =============================================================================
# Volatility Charts
# =============================================================================

def volatility_chart(
    fits: List[VolatilityFit],
    rolling: Optional[pd.Series] = None,
    title: str = 'Conditional Volatility',
    height: int = 400
) -> go.Figure:
    """
    Overlay fitted conditional volatility of each model on rolling volatility.

    Args:
        fits: Fitted GARCH-family models.
        rolling: Optional rolling standard deviation series.
        title: Chart title.
        height: Chart height.

    Returns:
        Plotly Figure object.
    """
    if not fits and (rolling is None or rolling.dropna().empty):
        return _empty_figure(title, height)

    fig = go.Figure()

    if rolling is not None:
        fig.add_trace(go.Scatter(
            x=rolling.index,
            y=rolling.values,
            mode='lines',
            name=rolling.name or 'Rolling std',
            line=dict(color=COLORS['neutral'], width=1, dash='dot')
        ))

    for i, fit in enumerate(fits):
        vol = fit.conditional_volatility
        fig.add_trace(go.Scatter(
            x=vol.index,
            y=vol.values,
            mode='lines',
            name=fit.spec.label,
            line=dict(color=MODEL_COLORS[i % len(MODEL_COLORS)], width=1.5)
        ))

    fig.update_layout(
        title=title,
        xaxis_title="Date",
        yaxis_title="Daily Volatility",
        yaxis=dict(tickformat='.1%'),
        height=height,
        hovermode='x unified',
        template='plotly_white'
    )

    return fig


def aic_comparison_chart(
    table: pd.DataFrame,
    title: str = 'Model Comparison (AIC)',
    height: int = 350
) -> go.Figure:
    """Create a bar chart of AIC per model from a comparison table."""
    if table.empty:
        return _empty_figure(title, height)

    fig = go.Figure(go.Bar(
        x=table['model'],
        y=table['aic'],
        marker_color=[MODEL_COLORS[i % len(MODEL_COLORS)] for i in range(len(table))],
        text=[f'{v:.1f}' for v in table['aic']],
        textposition='outside'
    ))

    fig.update_layout(
        title=title,
        yaxis_title="AIC (lower is better)",
        height=height,
        template='plotly_white'
    )

    return fig


# =============================================================================
# VaR Charts
# =============================================================================

def var_violation_chart(
    returns: pd.Series,
    backtest: VaRBacktestResult,
    title: Optional[str] = None,
    height: int = 400
) -> go.Figure:
    """
    Create a returns chart with the VaR threshold and violation markers.

    Args:
        returns: Return series that was backtested.
        backtest: VaRBacktestResult for the series.
        title: Chart title.
        height: Chart height.

    Returns:
        Plotly Figure object.
    """
    title = title or f'VaR {1 - backtest.alpha:.0%} Violations ({backtest.violation_count})'
    if returns.empty:
        return _empty_figure(title, height)

    fig = go.Figure()

    fig.add_trace(go.Scatter(
        x=returns.index,
        y=returns.values,
        mode='lines',
        name='Log return',
        line=dict(color=COLORS['primary'], width=1)
    ))

    fig.add_hline(
        y=-backtest.var,
        line_dash="dash",
        line_color=COLORS['warning'],
        annotation_text=f"-VaR = {-backtest.var:.2%}"
    )

    hits = returns[backtest.violations.reindex(returns.index, fill_value=False)]
    if not hits.empty:
        fig.add_trace(go.Scatter(
            x=hits.index,
            y=hits.values,
            mode='markers',
            name='Violation',
            marker=dict(
                symbol='x',
                size=7,
                color=COLORS['violation']
            )
        ))

    fig.update_layout(
        title=title,
        xaxis_title="Date",
        yaxis_title="Log Return",
        yaxis=dict(tickformat='.1%'),
        height=height,
        template='plotly_white'
    )

    return fig


def var_summary_chart(
    var_table: pd.DataFrame,
    title: str = 'VaR Violation Rates',
    height: int = 350
) -> go.Figure:
    """
    Create a grouped bar chart of observed vs expected violation rates.

    Args:
        var_table: Table with 'symbol', 'violation_rate' and 'expected_rate' columns.
    """
    if var_table.empty:
        return _empty_figure(title, height)

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=var_table['symbol'],
        y=var_table['violation_rate'],
        name='Observed',
        marker_color=COLORS['violation']
    ))
    fig.add_trace(go.Bar(
        x=var_table['symbol'],
        y=var_table['expected_rate'],
        name='Expected',
        marker_color=COLORS['neutral']
    ))

    fig.update_layout(
        title=title,
        barmode='group',
        yaxis_title="Violation Rate",
        yaxis=dict(tickformat='.1%'),
        height=height,
        template='plotly_white'
    )

    return fig
