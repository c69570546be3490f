"""Test suite for IaCGate."""
