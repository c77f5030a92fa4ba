"""Shared fixtures for Kuest tests."""

from unittest.mock import Mock

import pytest

from kuest.auth.session import AuthSession
from kuest.auth.signer import RequestSigner
from kuest.auth.wallet import WalletSigner
from kuest.config import POLYGON
from kuest.models import ApiCredentials
from kuest.tests.helpers import (
    API_KEY,
    PASSPHRASE,
    PRIVATE_KEY,
    SECRET,
    credentials_response,
)


@pytest.fixture
def wallet():
    return WalletSigner(PRIVATE_KEY, chain_id=POLYGON)


@pytest.fixture
def credentials():
    return ApiCredentials(key=API_KEY, secret=SECRET, passphrase=PASSPHRASE)


@pytest.fixture
def mock_api():
    """CLOB API double returning valid credentials."""
    api = Mock()
    api.get_server_time.return_value = 1700000000
    api.derive_api_key.return_value = credentials_response()
    api.create_api_key.return_value = credentials_response("created-key")
    return api


@pytest.fixture
def session(wallet, mock_api):
    return AuthSession(wallet, mock_api)


@pytest.fixture
def authenticated_session(session, credentials):
    session.use_credentials(credentials)
    return session


@pytest.fixture
def signer(authenticated_session):
    return RequestSigner(authenticated_session)
