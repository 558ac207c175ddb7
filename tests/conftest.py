"""Pytest configuration and fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from client import CloudflareClient
from config import CloudflareConfig, Config, LoggingConfig, PluginConfig


@pytest.fixture
def cloudflare_config():
    """Cloudflare client configuration with a bearer token."""
    return CloudflareConfig(api_token="test-token", retries=0)


@pytest.fixture
def provider_config(cloudflare_config):
    """Full provider configuration."""
    return Config(
        cloudflare=cloudflare_config,
        logging=LoggingConfig(),
        plugins=PluginConfig(),
    )


@pytest.fixture
def mock_client():
    """Create a mock API client that passes the CloudflareClient type check."""
    client = MagicMock(spec=CloudflareClient)
    client.get = AsyncMock(return_value=None)
    client.post = AsyncMock(return_value=None)
    client.put = AsyncMock(return_value=None)
    client.delete = AsyncMock(return_value=None)
    return client


@pytest.fixture
def r2_attributes():
    """Desired state of an R2 event notification configuration."""
    return {
        "account_id": "acct123",
        "bucket_name": "uploads",
        "queue_id": "0f5c3e1a-queue",
        "rules": [{"prefix": "img/", "actions": ["PutObject"]}],
    }


@pytest.fixture
def vectorize_attributes():
    """Desired state of a Vectorize index."""
    return {
        "account_id": "acct123",
        "name": "myindex",
        "dimensions": 768,
        "metric": "cosine",
        "description": "embeddings",
    }


@pytest.fixture
def queue_consumer_attributes():
    """Desired state of a queue consumer."""
    return {
        "account_id": "acct123",
        "queue_id": "queue-1",
        "type": "worker",
        "script_name": "consumer-worker",
        "settings": {"batch_size": 10, "max_retries": 3},
    }


@pytest.fixture
def workers_script_attributes():
    """Desired state of a Workers script."""
    return {
        "account_id": "acct123",
        "script_name": "my-worker",
        "main_module": "index.js",
        "compatibility_date": "2024-09-23",
        "parts": {
            "index.js": {"part": "export default {}", "module": True},
        },
    }
