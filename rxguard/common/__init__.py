"""Shared utilities for RxGuard."""
