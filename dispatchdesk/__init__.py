"""
DispatchDesk - dispatch order reconciliation backend
"""
