# backend/contract.py
#
# Shape and instructions the hosted extraction model is held to.

RESPONSE_SCHEMA = {
    "type": "object",
    "properties": {
        "trades": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "symbol": {"type": "string"},
                    "trade_type": {"type": "string", "enum": ["BUY", "SELL"]},
                    "quantity": {"type": "number"},
                    "price": {"type": "number"},
                    "order_value": {"type": "number"},
                    "exchange": {"type": "string"},
                },
                "required": ["symbol", "trade_type", "quantity", "price", "order_value", "exchange"],
            },
        },
        "charges": {
            "type": "object",
            "properties": {
                "brokerage": {"type": "number"},
                "stt": {"type": "number"},
                "gst": {"type": "number"},
                "stamp_duty": {"type": "number"},
                "exchange_charges": {"type": "number"},
                "sebi_charges": {"type": "number"},
                "total_charges": {"type": "number"},
            },
            "required": ["brokerage", "stt", "gst", "total_charges"],
        },
        "summary": {
            "type": "object",
            "properties": {
                "gross_pnl": {"type": "number"},
                "net_pnl": {"type": "number"},
            },
            "required": ["gross_pnl", "net_pnl"],
        },
    },
    "required": ["trades", "charges", "summary"],
}

SYSTEM_INSTRUCTION = """
You are an expert financial data analyst specializing in Indian Stock Market Contract Notes (Zerodha, AngelOne, etc.).
Your task is to extract trading data, calculate charges, and summarize P&L from the provided PDF document.

1. Identify the 'Trades' or 'Transactions' table. Extract Symbol, Buy/Sell type, Quantity, Price, and calculated Order Value.
2. Identify the 'Charges' section (Brokerage, STT, GST, Exchange Txn, Sebi, Stamp Duty).
3. Calculate Gross P&L (Sell Value - Buy Value) and Net P&L (Gross P&L - Total Charges).
4. Ensure strict JSON output based on the schema.
5. Ignore any non-trade related info.
""".strip()

USER_PROMPT = "Extract trade details, charges, and summary from this contract note."
