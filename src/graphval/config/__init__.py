"""Configuration: process-wide tunables, per-call settings, logging."""
