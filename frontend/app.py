# frontend/app.py

import os

import pandas as pd
import requests
import streamlit as st

API_URL = os.getenv("API_URL", "http://api:8000")
REFRESH_SECONDS = int(os.getenv("DASHBOARD_REFRESH_SECONDS", "10"))

STEP_ICONS = {"done": "✅", "active": "⏳", "failed": "❌", "pending": "⚪"}

st.set_page_config(page_title="TradeLedger AI", layout="wide")

if "attempt" not in st.session_state:
    st.session_state.attempt = None

# ---------------------------
# Session
# ---------------------------

st.sidebar.title("📈 TradeLedger AI")
user_id = st.sidebar.text_input("Signed-in user ID", value=st.session_state.get("user_id", ""))
st.session_state.user_id = user_id
page = st.sidebar.radio("Navigate", ["Dashboard", "Upload"])

if not user_id:
    st.info("Sign in to sync your contract notes across devices securely.")
    st.stop()

headers = {"X-User-Id": user_id}


def money(value: float) -> str:
    return f"₹{value:,.2f}"


# ---------------------------
# Upload
# ---------------------------

def render_steps(attempt: dict):
    st.subheader("Processing Status")
    for step in attempt.get("steps", []):
        st.write(f"{STEP_ICONS.get(step['state'], '⚪')} {step['label']}")


def upload_page():
    st.title("Upload Contract Note")
    st.write(
        "Securely process your broker contract notes (PDF) to auto-import trades. "
        "We support Zerodha, Angel One, Groww, and Upstox formats."
    )

    uploaded = st.file_uploader("Drag & drop your PDF here", type=["pdf"])
    if uploaded is None:
        # clearing the file resets the attempt
        st.session_state.attempt = None

    password = st.text_input(
        "PDF Password (Usually your PAN or PAN+DOB)",
        type="password",
        placeholder="Enter password if protected",
    )

    if st.button("Analyze & Import", disabled=uploaded is None):
        with st.spinner("Processing..."):
            try:
                resp = requests.post(
                    f"{API_URL}/contract-notes",
                    headers=headers,
                    files={"file": (uploaded.name, uploaded.getvalue(), uploaded.type or "application/pdf")},
                    data={"password": password} if password else {},
                    timeout=300,
                )
            except requests.RequestException as e:
                st.error(f"Error: {e}")
                return
        body = resp.json() if "application/json" in resp.headers.get("content-type", "") else {}
        attempt = body.get("attempt") or {"status": "error", "error": body.get("detail", resp.text), "steps": []}
        st.session_state.attempt = attempt

    attempt = st.session_state.attempt
    if not attempt:
        return

    render_steps(attempt)
    if attempt.get("status") == "error":
        st.error(attempt.get("error") or "Failed to process contract note.")
    elif attempt.get("status") == "success":
        summary = attempt.get("summary") or {}
        st.success(f"Imported {attempt.get('trade_count', 0)} trades.")
        st.write(f"P&L: {money(summary.get('net_pnl', 0))}")
        for warning in attempt.get("warnings", []):
            st.warning(warning)


# ---------------------------
# Dashboard
# ---------------------------

@st.fragment(run_every=REFRESH_SECONDS)
def dashboard_body():
    try:
        resp = requests.get(f"{API_URL}/dashboard", headers=headers, timeout=30)
    except requests.RequestException as e:
        st.error(f"Error: {e}")
        return
    if not resp.ok:
        st.error(f"Error: {resp.status_code} - {resp.text}")
        return

    view = resp.json()
    if not view.get("has_data"):
        st.markdown("### No Data Available")
        st.write("Upload a contract note to see analytics.")
        return

    col1, col2, col3 = st.columns(3)
    col1.metric("Win Rate (Days)", f"{view['win_rate']}%")
    col1.caption(f"Winners {view['winning_days']} · Losers {view['losing_days']}")
    col2.metric("Profit Factor", view["profit_factor"])
    col2.caption(f"Profit retained {view['retained_profit_pct']:.1f}%")
    col3.metric("Net P&L", money(view["total_net_pnl"]))
    col3.caption(f"Charges {money(view['total_charges'])} · {view['total_trades']} trades")

    st.subheader("Equity Curve")
    equity = pd.DataFrame(view["equity_curve"])
    st.line_chart(equity, x="name", y="equity")

    st.subheader("Cost Breakdown")
    costs = pd.DataFrame(view["cost_breakdown"]).set_index("name")
    st.bar_chart(costs["value"])


def dashboard_page():
    st.title("Analytics Overview")
    st.caption("Real-time Data")

    try:
        report = requests.get(f"{API_URL}/report", headers=headers, timeout=30)
    except requests.RequestException:
        report = None
    if report is not None and report.ok:
        st.download_button("Export Report", report.text, file_name="trading-report.md", mime="text/markdown")

    dashboard_body()


if page == "Upload":
    upload_page()
else:
    dashboard_page()
