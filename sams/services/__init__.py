"""Business services: billing, payments, credit, transactions and import."""
