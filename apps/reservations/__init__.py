"""Reservations app package.

The cart-like ``Reservation`` aggregate and its ``ServiceBooking`` line
items. Every booking insert re-checks service capacity inside the same
transaction that holds a lock on the service row, so concurrent requests
cannot jointly overbook a time window.
"""
