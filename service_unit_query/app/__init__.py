"""
Unit Query gateway package.

The gateway fronts Salesforce ``Unit__c`` records behind a single
authenticated endpoint, enforcing:
- Authentication: static bearer API key, compared in constant time
- Validation: every filter parameter is parsed into a typed FilterSet
- Caching: TTL response cache with stale fallback on upstream failure

Structure:
- app.main: FastAPI app, route and lifecycle wiring.
- app.auth: Credential gate for inbound requests.
- app.domain: Filter parsing, SOQL rendering, pagination metadata.
- app.caching: Cache stores and the TTL response cache.
- app.adapters: Salesforce HTTP client and token file access.
- app.units: The request pipeline tying the pieces together.
"""
