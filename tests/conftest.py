"""
Pytest fixtures for Tokenflow tests. Builders and fakes live in helpers.py.
"""

from __future__ import annotations

import pytest

from helpers import FakeHelius, FakeRpc

from backend_tokenflow.core.exceptions import RpcError


@pytest.fixture
def fake_rpc() -> FakeRpc:
    return FakeRpc()


@pytest.fixture
def fake_helius() -> FakeHelius:
    return FakeHelius()


@pytest.fixture
def rpc_error() -> RpcError:
    return RpcError("boom", code=-32000)
