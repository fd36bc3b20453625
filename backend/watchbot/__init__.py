"""Durable outbox sync of chat batches to Notion."""
