"""
Domain layer for the CO2 proxy.

Exposes the request pipeline that ties the limiter, cache and upstream client
together.
"""

from .pipeline import Co2DataPipeline, DataSource, ProxyResult

__all__ = ["Co2DataPipeline", "DataSource", "ProxyResult"]
