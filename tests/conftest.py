from types import SimpleNamespace
from unittest import mock

import pytest
from azure.core.credentials import AccessToken

from kvazure.identity import Credential, TokenProvider
from kvazure.ids import WorkflowNames
from kvazure.vault import VaultManagement
from kvazure.workflow import VaultWorkflow
from kvcontext.config import WorkflowConfig
from kvcontext.envloader import EnvLoader
from kvcontext.logger import Logger

VAULT_URI = "https://testkv1234.vault.azure.net/"


@pytest.fixture(autouse=True)
def clean_context():
    """
    Clears the cached environment and any loguru sinks a test configured.
    """
    EnvLoader.reset()
    Logger.reset()
    yield
    EnvLoader.reset()
    Logger.reset()


@pytest.fixture
def env_vars():
    """
    Returns a fully populated environment mapping.

    Example:
        def test_config(env_vars):
            assert WorkflowConfig.from_env(env_vars).client_id == "client-id"
    """
    return {
        "CLIENT_ID": "client-id",
        "DOMAIN": "tenant-id",
        "APPLICATION_SECRET": "app-secret",
        "AZURE_SUBSCRIPTION_ID": "subscription-id",
        "OBJECT_ID": "object-id",
        "OBJECT_ID_KEYVAULT_OPERATIONS": "object-id-kv-ops",
        "SP_KEYVAULT_OPERATIONS": "sp-kv-ops",
    }


@pytest.fixture
def config(env_vars):
    return WorkflowConfig.from_env(env_vars)


@pytest.fixture
def names():
    return WorkflowNames(resource_group="testrg1234", vault_name="testkv1234")


class StubTokenProvider(TokenProvider):
    """
    Returns a distinct token per audience and per call, and records every request.
    """

    def __init__(self):
        self.requests = []

    def acquire(self, audience, authority=None):
        self.requests.append((audience, authority))
        return Credential(
            token_type="Bearer",
            access_token=f"token-{len(self.requests)}-for-{audience}",
            audience=audience,
            expires_on=3600,
        )


@pytest.fixture
def stub_provider():
    return StubTokenProvider()


def make_vault(policies, uri=VAULT_URI, location="westus"):
    return SimpleNamespace(
        location=location,
        tags={},
        properties=SimpleNamespace(vault_uri=uri, access_policies=list(policies)),
    )


@pytest.fixture
def azure():
    """
    One parent Mock holding every collaborator, so `azure.mock_calls` records
    calls across all of them in the order they happened.

    Children:
        credential, resource_groups, vault_management, vault_data, sleep
    """
    azure = mock.Mock()
    state = {"policies": []}

    azure.credential.get_token.return_value = AccessToken("mgmt-token", 3600)
    azure.resource_groups.create_or_update.side_effect = (
        lambda name, location: SimpleNamespace(name=name, location=location)
    )
    azure.resource_groups.delete.return_value = None

    azure.vault_management.access_policy.side_effect = VaultManagement.access_policy

    def create_vault(group, name, **kwargs):
        state["policies"] = list(kwargs["access_policies"])
        return make_vault(state["policies"], location=kwargs["location"])

    def grant_access(group, name, entry):
        state["policies"] = state["policies"] + [entry]
        return make_vault(state["policies"])

    azure.vault_management.create_or_update.side_effect = create_vault
    azure.vault_management.grant_access.side_effect = grant_access
    azure.vault_management.delete.return_value = None

    azure.vault_data.create_key.return_value = SimpleNamespace(
        id=f"{VAULT_URI}keys/testkeyrandom99/1", name="testkeyrandom99", key_type="RSA"
    )
    azure.vault_data.get_keys.return_value = [SimpleNamespace(name="testkeyrandom99")]
    azure.vault_data.set_secret.return_value = SimpleNamespace(
        id=f"{VAULT_URI}secrets/mysecret/1", name="mysecret", value="my shared secret"
    )
    azure.vault_data.get_secrets.return_value = [SimpleNamespace(name="mysecret")]

    azure.state = state
    return azure


@pytest.fixture
def workflow_factory(azure, stub_provider, names):
    """
    Builds a VaultWorkflow wired to the `azure` mocks.

    Example:
        def test_run(workflow_factory):
            result = workflow_factory(config).run()
    """
    def factory(cfg, **overrides):
        kwargs = dict(
            token_provider=stub_provider,
            credential=azure.credential,
            resource_groups=azure.resource_groups,
            vault_management=azure.vault_management,
            vault_data=azure.vault_data,
            names=names,
            sleep=azure.sleep,
        )
        kwargs.update(overrides)
        return VaultWorkflow(cfg, **kwargs)

    return factory
