"""Reconcile and release services."""
