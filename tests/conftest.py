"""
Shared pytest fixtures for dsesign tests.

Provides the in-process DocuSign server, an RSA key pair for JWT grants and
pre-built OAuth2/JWT configurations pointed at the demo environment.
"""

from typing import Tuple

import pytest
import pytest_asyncio

from dsesign.jwt_grant import JWTConfig
from dsesign.oauth2 import OAuth2Config

from tests.infrastructure.docusign_test_server import (
    INTEGRATOR_KEY,
    SECRET,
    DocuSignTestServer,
    generate_private_key_pem,
)


@pytest.fixture(scope="session")
def rsa_key_pair() -> Tuple[str, bytes]:
    """Real RSA key pair shared by the whole session (generation is slow)."""
    return generate_private_key_pem()


@pytest.fixture
def server(rsa_key_pair) -> DocuSignTestServer:
    """Fresh DocuSign test server for each test."""
    _, public_pem = rsa_key_pair
    return DocuSignTestServer(public_key_pem=public_pem)


@pytest_asyncio.fixture
async def http_client(server):
    """httpx client routed to the test server."""
    client = server.client()
    try:
        yield client
    finally:
        await client.aclose()


@pytest.fixture
def oauth_config() -> OAuth2Config:
    return OAuth2Config(
        integrator_key=INTEGRATOR_KEY,
        secret=SECRET,
        redirect_url="https://www.example.com/token",
        is_demo=True,
    )


@pytest.fixture
def jwt_config(rsa_key_pair) -> JWTConfig:
    private_pem, _ = rsa_key_pair
    return JWTConfig(
        integrator_key=INTEGRATOR_KEY,
        private_key=private_pem,
        key_pair_id="key-pair-1",
        is_demo=True,
    )
