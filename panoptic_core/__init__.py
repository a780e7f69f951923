"""Computational core for multi-leg option position identifiers, pricing, and ledger sync."""
