"""Bookings app package.

The reservation engine: room reservations and their booking envelope,
the status state machine, interval conflict checks, the transactional
coordinator that admits holds under a per-room lock, cancellation with
policy based refunds and the Celery sweeps that release expired holds
and complete elapsed stays.
"""
