"""
xmarket - bet on Polymarket from social posts

This package contains two betting flows:

1. CUSTODIAL BOT (xmarket.main)
   - Entry point: python -m xmarket.main
   - Reads mentions, answers find/bet/balance/positions commands
   - Trades from the platform wallet against user balances in SQLite

2. SELF-CUSTODIAL BET FLOW (xmarket.api.server)
   - Entry point: python -m xmarket.api.server
   - Checks USDC across chains, plans a LiFi bridge, executes it
   - One orchestrator per session, consumed by the web/extension UIs

Key Modules:
- xmarket.balances: USDC balance reads and source-chain selection
- xmarket.bridge: route planning and bridge execution
- xmarket.flow: bet flow state machine
- xmarket.trading: trade executors and the bet ledger
- xmarket.bot: command parsing and replies
- xmarket.wallet: custodial deposits and withdrawals
"""

__version__ = "0.3.0"
