#Description: Plotly chart helpers for the performance dashboard.

import pandas as pd
import plotly.graph_objects as go

from models.schemas import ProfitFactorReport, SignalSnapshot
from utils.pricing import actual_efficiency, entry_average

def profit_factor_chart(report: ProfitFactorReport):
    fig = go.Figure()
    if not report.monthly_data:
        return fig
    months = [m.month for m in report.monthly_data]
    fig.add_trace(go.Bar(x=months, y=[m.profit_factor for m in report.monthly_data], name="Profit factor"))
    fig.add_trace(go.Scatter(x=months, y=[m.gross_profit for m in report.monthly_data], mode="lines+markers",
                             name="Gross profit %", yaxis="y2"))
    fig.add_trace(go.Scatter(x=months, y=[-m.gross_loss for m in report.monthly_data], mode="lines+markers",
                             name="Gross loss %", yaxis="y2"))
    fig.update_layout(height=320, margin=dict(l=10, r=10, t=30, b=10),
                      yaxis2=dict(overlaying="y", side="right", showgrid=False))
    return fig

def signals_table(signals: list[SignalSnapshot]) -> pd.DataFrame:
    rows = []
    for s in signals:
        rows.append({
            "symbol": s.symbol, "exchange": s.exchange, "status": s.status.value,
            "entry": entry_average(s.entry_price_min, s.entry_price_max), "current": s.current_price,
            "sl": s.stop_loss_price, "tp1": s.tp1_price, "tp2": s.tp2_price, "tp3": s.tp3_price,
            "efficiency_pct": round(actual_efficiency(s), 2),
            "tp1_hit": s.tp1_hit_at, "tp2_hit": s.tp2_hit_at, "tp3_hit": s.tp3_hit_at, "sl_hit": s.sl_hit_at,
            "holding_until": s.holding_period,
        })
    return pd.DataFrame(rows)
