"""Finances app package.

Payment records, the log of every exchange with the payment provider
and the gateway clients used to create payment intents, verify
payments and issue refunds.
"""
