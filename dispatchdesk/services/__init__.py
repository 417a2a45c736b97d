"""
Business logic services for DispatchDesk

Calculators (ledger_balance, landed_cost, returns, order_view) are pure
functions over pydantic snapshots. DispatchOrderService and
distribute_payment orchestrate them against the stores.
"""
