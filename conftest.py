"""
Global pytest configuration for the codex-orchestrator project.
"""


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "asyncio: mark test as an asyncio coroutine")
    config.addinivalue_line(
        "markers", "integration: marks tests that drive a real git repository"
    )
