#Description: Streamlit root. Initializes the DB and scheduler, shows read-only signal performance.

import datetime as dt

import streamlit as st

from utils.config import settings
from services.scheduler import start_scheduler, get_scheduler
from utils.logging import logger
from models.db import init_db

st.set_page_config(
    page_title="Signal Tracker",
    page_icon="📈",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Initialize DB and services once
if "app_initialized" not in st.session_state:
    init_db()
    start_scheduler()
    st.session_state["app_initialized"] = True
    logger.info("App initialized")

from services.metrics import MetricsService
from services.repository import SignalRepository
from utils.charts import profit_factor_chart, signals_table

st.title("Signal Tracker")
st.caption(f"Exchange time zone: {settings.MARKET_TIMEZONE} | Scheduler running: {bool(get_scheduler())}")

metrics = MetricsService.instance()
repo = SignalRepository.instance()

col1, col2 = st.columns(2)
with col1:
    start = st.date_input("From", value=None)
with col2:
    end = st.date_input("To", value=None)

m = metrics.trading_metrics(start, end)
c = st.columns(6)
c[0].metric("Win rate", f"{m.win_rate:.2f}%")
c[1].metric("Avg profit", f"{m.avg_profit:.2f}%")
c[2].metric("Signals", m.total_signals)
c[3].metric("Avg holding", f"{m.avg_holding_days} days")
c[4].metric("Max drawdown", f"{m.max_drawdown:.2f}%")
c[5].metric("Best / worst", f"{m.max_profit:.2f}% / {m.min_profit:.2f}%")

st.divider()

year = st.number_input("Year", min_value=2000, max_value=2100, value=dt.date.today().year, step=1)
report = metrics.profit_factor(int(year))
st.metric("Profit factor (latest month)", f"{report.profit_factor:.2f}")
st.plotly_chart(profit_factor_chart(report), use_container_width=True)

st.divider()
st.subheader("Open signals")
st.dataframe(signals_table(repo.list_open()), use_container_width=True)
