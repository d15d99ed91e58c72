"""Catalog app package.

Providers and the services they offer. The reservation core reads
service capacity, price and ownership from here and never writes back.
"""
