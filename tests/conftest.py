"""Shared pytest fixtures for Swadeshi tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_oidc_jwks_cache():
    """Reset the process-wide JWKS cache to avoid cross-test contamination.

    Without this reset, a JWKS cached by a previous test may not match the
    current test's keys.
    """
    import swadeshi.api.auth as auth_module

    auth_module._jwks.clear()
    yield
    auth_module._jwks.clear()


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Per-user request counters are process-global too."""
    from swadeshi.api.rate_limit import standard_limiter

    standard_limiter.reset()
    yield
    standard_limiter.reset()
