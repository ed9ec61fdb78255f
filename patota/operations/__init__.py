"""
Operations Layer

Business workflows that write to the club ledger. Each module composes
database access into one transaction per operation, validates input and
enforces the admin role where required.

Architecture:
- Database layer: models, engine and session management
- Operations layer: business rules and multi-step writes
- Services layer: read-side views (ranking, cash ledger, reports)
- Command layer: Discord cogs and views

Modules:
- MemberOperations: signup, admin registration, activation, actor resolution
- EventOperations: scheduling, RSVP, attendance with fine/point side effects
- DuesOperations: monthly dues generation and exemptions
- FineOperations: attendance and guest fines posted with their cash entry
- PaymentOperations: payment submission and admin confirmation
- TeamOperations: team draw, score registration and correction
- CashOperations: cash log appends and withdrawals
"""
