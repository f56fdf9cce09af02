"""In-process telemetry stores and tracing setup."""
