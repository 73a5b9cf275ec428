"""
                        Services Module

Business logic behind the HTTP layer. Pluggable collaborators follow the
base/implementation/factory layout (abstract base, in-memory or mock
implementation, real implementation, factory in the package __init__).

Services:
    - orders: Order Service, the lifecycle orchestrator
    - schedule: Open/closed evaluation from business hours
    - pricing: Authoritative unit prices and line totals
    - order_store: SQLAlchemy and in-memory order document stores
    - establishment: Business hours, catalog snapshot and delivery fees
    - events: Event Hub fan-out to live staff streams
    - notifications: Mock and Twilio customer notification gateways
    - proof_storage: Proof-of-payment image storage
"""
