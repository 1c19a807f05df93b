"""
Test suite for the Relay orchestration layer.

Tests are unit tests against faked provider SDKs and HTTP transports:
    - Parsing and scoring: pure functions (json extractor, model scoring)
    - Discovery: catalog refresh against httpx.MockTransport
    - Providers: attempt matrix, credential rotation, streaming
    - Orchestration: fallback chain, swarm and hybrid engines
    - Services: skills, memory and chat helpers

Test markers:
    - unit: Fast unit tests
    - integration: Tests requiring live provider credentials
    - slow: Tests taking >1 second

Run tests:
    pytest                    # All tests
    pytest -m unit            # Unit tests only
    pytest -m "not slow"      # Skip slow tests
"""
