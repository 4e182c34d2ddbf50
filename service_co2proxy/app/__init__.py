"""
CO2 Data Proxy service package.

The proxy fronts the NOAA Mauna Loa daily CO2 feed, enforcing:
- Rate limiting: sliding window per client identity
- Caching: one shared entry with stale fallback on upstream failure
- Circuit-breaking for the upstream fetch

Structure:
- app.main: FastAPI app, routes, and wiring.
- app.store: Key-value store backends and the fail-safe guard.
- app.ratelimit: Sliding window limiter and client identity extraction.
- app.caching: Response cache.
- app.adapters: Upstream feed client.
- app.domain: Request-level pipeline.
"""
