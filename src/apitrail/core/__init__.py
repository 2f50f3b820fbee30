"""
Core reporting components.

This package contains the per-request reporting pipeline:
- Data masking engine
- Timing resolution for traditional and long-lived worker runtimes
- Payload assembly
- Dispatch gate and collector sender
- Metrics collection
"""
