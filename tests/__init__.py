"""Tests for delivery-orchestrator."""
