"""
Shared Kernel

Base classes and utilities shared by the hotels, bookings and finances
apps: value objects, domain events, the unit of work that owns database
transactions and resource locks, and the in-process message bus.
"""
