# tests/integration/__init__.py
"""
Integration tests for the IED control bridge.

These run a full RuntimeContext (listener, control handlers, bridge
thread) on the demo model rather than single components.

Running Integration Tests:
    pytest tests/integration/                    # All integration tests
    pytest -m integration                        # Tagged as integration
"""
