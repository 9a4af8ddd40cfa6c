"""Hotels app package.

Vendors, their hotel listings and the rooms guests reserve. A room is
the bookable resource: every reservation belongs to exactly one room
and the room row is the lock taken when reservations are admitted.
"""
