"""TradingView → Telegram bot client.

WHY: Users connect a Telegram bot to TradingView alerts by submitting the
bot token, authenticating the bot in chat, and pasting a per-bot webhook
URL into TradingView. This package is the client side of that protocol.

HOW: Session identity (session.py) → transport (api/) → flows (flows/),
with a flash message queue and clipboard feedback for user-visible
outcomes. app.py composes everything behind a small router; cli.py is the
terminal front end; server/ is an in-memory stub of the backend contract.

RULES:
- One session identity per client, persisted between runs
- DashboardState is replaced wholesale, never patched
- Transport failures stop at flow boundaries
"""

__version__ = "0.1.0"
