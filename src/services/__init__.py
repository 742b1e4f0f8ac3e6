"""Patient billing ledger services.

- allocation_service: pure FIFO allocation engine
- ledger_repository: tenant-scoped reads and writes of charges and payments
- payment_service / charge_service: recompute paid flags after every mutation
- balance_service: read-only balance and statement reporting
"""
