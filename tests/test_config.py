import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from pydantic import SecretStr

from multilang_tutor.config import Settings
from multilang_tutor.core.errors import SecretUnavailableError
from multilang_tutor.credentials import (
    SecretsManagerProvider,
    StaticSecretProvider,
    build_secret_provider,
)


def test_defaults(monkeypatch):
    monkeypatch.delenv("BEDROCK_MODEL_ID", raising=False)
    settings = Settings(_env_file=None)

    assert settings.bedrock_model_id == "anthropic.claude-3-sonnet-20240229-v1:0"
    assert settings.bedrock_temperature == 0.7
    assert settings.bedrock_top_p == 0.9
    assert settings.bedrock_max_tokens == 2000
    assert settings.metadata_read_batch_size == 100
    assert settings.metadata_write_batch_size == 25


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("BEDROCK_TEMPERATURE", "0.1")
    monkeypatch.setenv("VECTOR_INDEX_BACKEND", "pinecone")

    settings = Settings(_env_file=None)

    assert settings.bedrock_temperature == 0.1
    assert settings.vector_index_backend == "pinecone"


def test_pinecone_base_url():
    settings = Settings(_env_file=None, pinecone_index_name="tutor", pinecone_environment="us-east1-gcp")

    assert settings.pinecone_base_url == "https://tutor-us-east1-gcp.svc.us-east1-gcp.pinecone.io"
    assert Settings(_env_file=None, pinecone_index_host="https://host.test/").pinecone_base_url == "https://host.test"


# ---------------------------------------------------------------------
# Secret providers
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_secrets_manager_reads_json_key():
    client = MagicMock()
    client.get_secret_value.return_value = {"SecretString": json.dumps({"pineconeApiKey": "pc-123"})}

    provider = SecretsManagerProvider("tutor/pinecone", "us-east-1", client=client)

    assert await provider.get_secret() == "pc-123"
    client.get_secret_value.assert_called_once_with(SecretId="tutor/pinecone")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "behaviour",
    [
        {"return_value": {"SecretString": "not json"}},
        {"return_value": {"SecretString": json.dumps({"otherKey": "x"})}},
        {"side_effect": ClientError({"Error": {"Code": "AccessDeniedException"}}, "GetSecretValue")},
    ],
)
async def test_secrets_manager_failures(behaviour):
    client = MagicMock()
    client.get_secret_value.configure_mock(**behaviour)

    with pytest.raises(SecretUnavailableError):
        await SecretsManagerProvider("tutor/pinecone", "us-east-1", client=client).get_secret()


@pytest.mark.asyncio
async def test_static_provider():
    assert await StaticSecretProvider(SecretStr("k")).get_secret() == "k"

    with pytest.raises(SecretUnavailableError):
        await StaticSecretProvider(SecretStr("")).get_secret()


def test_provider_selection():
    static = build_secret_provider(Settings(_env_file=None))
    assert isinstance(static, StaticSecretProvider)
