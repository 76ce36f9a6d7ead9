"""Adapters for the credential service, notifier and blob store."""
