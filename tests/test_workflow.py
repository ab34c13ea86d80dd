import random
import re
from unittest import mock

import pytest
from azure.core.exceptions import ClientAuthenticationError, HttpResponseError

from kvazure import workflow as wf
from kvazure.ids import WorkflowNames
from kvazure.vault import GRANT_KEY_PERMISSIONS, INITIAL_KEY_PERMISSIONS
from kvcontext.config import WorkflowConfig
from kvutil.error_handling import ConfigurationError

from tests.conftest import VAULT_URI

# step number -> the collaborator call that step makes
STEP_CALLS = {
    1: ("credential", "get_token"),
    2: ("resource_groups", "create_or_update"),
    3: ("vault_management", "create_or_update"),
    4: ("sleep", None),
    5: ("vault_data", "create_key"),
    6: ("vault_data", "get_keys"),
    7: ("vault_data", "set_secret"),
    8: ("vault_data", "get_secrets"),
    9: ("vault_management", "grant_access"),
}


def _call_of(azure, step):
    owner, method = STEP_CALLS[step]
    target = getattr(azure, owner)
    return getattr(target, method) if method else target


def _names_of(mock_calls):
    return [c[0] for c in mock_calls]


def test_end_to_end_success(config, azure, stub_provider, workflow_factory):
    """
    Fully populated config -> group, vault with one policy, delay, key, keys,
    secret, secrets, policy grows to two, vault deleted then group, success.
    """
    names = WorkflowNames.generate(random.Random(42))
    assert re.fullmatch(r"testrg\d{1,4}", names.resource_group)

    result = workflow_factory(config, names=names).run()

    azure.resource_groups.create_or_update.assert_called_once_with(names.resource_group, "westus")

    create_kwargs = azure.vault_management.create_or_update.call_args.kwargs
    assert len(create_kwargs["access_policies"]) == 1
    first = create_kwargs["access_policies"][0]
    assert first.object_id == "object-id"
    assert first.tenant_id == "tenant-id"
    assert first.permissions.keys == INITIAL_KEY_PERMISSIONS
    assert first.permissions.secrets == ["all"]

    azure.sleep.assert_called_once_with(5.0)

    key_args = azure.vault_data.create_key.call_args
    assert key_args.args == (VAULT_URI, "testkeyrandom99", "RSA")
    assert key_args.kwargs["key_ops"] == ["encrypt", "decrypt", "sign", "verify", "wrapKey", "unwrapKey"]
    assert key_args.kwargs["not_before"] < key_args.kwargs["expires"]

    secret_args = azure.vault_data.set_secret.call_args
    assert secret_args.args == (VAULT_URI, "mysecret", "my shared secret")
    assert secret_args.kwargs["content_type"] == "test secret"

    assert result.vault_uri == VAULT_URI
    assert result.key_count == 1
    assert result.secret_count == 1
    assert result.access_policy_count == 2
    assert result.cleaned_up
    assert len(result.progress) == 9

    calls = _names_of(azure.mock_calls)
    assert calls.index("vault_management.delete") < calls.index("resource_groups.delete")
    azure.vault_management.delete.assert_called_once_with(names.resource_group, names.vault_name)
    azure.resource_groups.delete.assert_called_once_with(names.resource_group)


def test_access_policy_is_appended_not_replaced(config, azure, workflow_factory):
    workflow_factory(config).run()

    policies = azure.state["policies"]
    assert len(policies) == 2
    original = azure.vault_management.create_or_update.call_args.kwargs["access_policies"][0]
    assert policies[0] is original
    assert policies[0].permissions.keys == INITIAL_KEY_PERMISSIONS

    granted = policies[1]
    assert granted.object_id == "object-id-kv-ops"
    assert granted.application_id == "sp-kv-ops"
    assert granted.permissions.keys == GRANT_KEY_PERMISSIONS
    assert granted.permissions.secrets == ["all"]


def test_settle_delay_precedes_every_data_plane_call(config, azure, workflow_factory):
    workflow_factory(config).run()

    calls = _names_of(azure.mock_calls)
    sleep_at = calls.index("sleep")
    assert calls.index("vault_management.create_or_update") < sleep_at
    for name in ("create_key", "get_keys", "set_secret", "get_secrets"):
        assert sleep_at < calls.index(f"vault_data.{name}")
    assert calls.count("sleep") == 1


def test_settle_delay_is_configurable(env_vars, azure, workflow_factory):
    cfg = WorkflowConfig.from_env(env_vars).with_overrides(settle_delay_ms=250)
    workflow_factory(cfg).run()
    azure.sleep.assert_called_once_with(0.25)


@pytest.mark.parametrize("step", sorted(STEP_CALLS))
def test_failure_at_any_step_still_cleans_up_once(step, config, azure, workflow_factory):
    error = HttpResponseError(message=f"step {step} exploded")
    _call_of(azure, step).side_effect = error

    with pytest.raises(HttpResponseError) as excinfo:
        workflow_factory(config).run()

    assert excinfo.value is error
    azure.vault_management.delete.assert_called_once()
    azure.resource_groups.delete.assert_called_once()

    # nothing after the failing step ran
    for later in range(step + 1, 10):
        _call_of(azure, later).assert_not_called()


def test_key_creation_failure_skips_secrets_and_grant(config, azure, workflow_factory):
    error = HttpResponseError(message="vault DNS not ready")
    azure.vault_data.create_key.side_effect = error

    workflow = workflow_factory(config)
    with pytest.raises(HttpResponseError) as excinfo:
        workflow.run()

    assert excinfo.value is error
    azure.vault_data.set_secret.assert_not_called()
    azure.vault_data.get_secrets.assert_not_called()
    azure.vault_management.grant_access.assert_not_called()
    azure.vault_management.delete.assert_called_once_with("testrg1234", "testkv1234")
    azure.resource_groups.delete.assert_called_once_with("testrg1234")
    assert workflow.result.progress[-1].startswith("5. ")


def test_authentication_failure_is_surfaced(config, azure, workflow_factory):
    error = ClientAuthenticationError(message="AADSTS7000215: Invalid client secret provided.")
    azure.credential.get_token.side_effect = error

    with pytest.raises(ClientAuthenticationError) as excinfo:
        workflow_factory(config).run()

    assert excinfo.value is error
    azure.resource_groups.create_or_update.assert_not_called()
    azure.vault_management.delete.assert_called_once()
    azure.resource_groups.delete.assert_called_once()


def test_vault_delete_failure_does_not_block_group_delete(config, azure, workflow_factory):
    azure.vault_management.delete.side_effect = HttpResponseError(message="vault busy")

    result = workflow_factory(config).run()

    azure.resource_groups.delete.assert_called_once_with("testrg1234")
    assert not result.cleaned_up
    assert [e.resource for e in result.cleanup_errors] == ["vault"]


def test_cleanup_error_never_masks_the_original(config, azure, workflow_factory):
    original = HttpResponseError(message="secret rejected")
    azure.vault_data.set_secret.side_effect = original
    azure.vault_management.delete.side_effect = RuntimeError("vault delete failed")
    azure.resource_groups.delete.side_effect = RuntimeError("group delete failed")

    workflow = workflow_factory(config)
    with pytest.raises(HttpResponseError) as excinfo:
        workflow.run()

    assert excinfo.value is original
    assert [e.resource for e in workflow.result.cleanup_errors] == ["vault", "resource group"]


def test_missing_configuration_fails_before_any_remote_call(azure, stub_provider):
    cfg = WorkflowConfig(client_id="", domain="", secret="s3cret", subscription_id="")

    with pytest.raises(ConfigurationError) as excinfo:
        wf.run(
            cfg,
            token_provider=stub_provider,
            credential=azure.credential,
            resource_groups=azure.resource_groups,
            vault_management=azure.vault_management,
            vault_data=azure.vault_data,
            sleep=azure.sleep,
        )

    message = str(excinfo.value)
    for name in ("CLIENT_ID", "DOMAIN", "AZURE_SUBSCRIPTION_ID"):
        assert name in message
    assert "APPLICATION_SECRET" not in message
    assert azure.mock_calls == []
    assert stub_provider.requests == []


def test_missing_primary_object_id_fails_vault_step(env_vars, azure, workflow_factory):
    env_vars.pop("OBJECT_ID")
    cfg = WorkflowConfig.from_env(env_vars)

    with pytest.raises(ValueError):
        workflow_factory(cfg).run()

    azure.vault_management.create_or_update.assert_not_called()
    azure.vault_management.delete.assert_called_once()
    azure.resource_groups.delete.assert_called_once()


def test_missing_secondary_principal_fails_grant_step(env_vars, azure, workflow_factory):
    env_vars.pop("OBJECT_ID_KEYVAULT_OPERATIONS")
    env_vars.pop("SP_KEYVAULT_OPERATIONS")
    workflow = workflow_factory(WorkflowConfig.from_env(env_vars))

    with pytest.raises(ValueError, match="object id"):
        workflow.run()

    azure.vault_data.get_secrets.assert_called_once()
    azure.vault_management.grant_access.assert_not_called()
    assert workflow.result.progress[-1].startswith("9. ")
    azure.vault_management.delete.assert_called_once_with("testrg1234", "testkv1234")
    azure.resource_groups.delete.assert_called_once_with("testrg1234")


def test_vault_without_uri_aborts_before_delay(config, azure, workflow_factory):
    azure.vault_management.create_or_update.side_effect = None
    azure.vault_management.create_or_update.return_value = mock.Mock(
        properties=mock.Mock(vault_uri=None, access_policies=[])
    )

    with pytest.raises(RuntimeError, match="has no URI"):
        workflow_factory(config).run()

    azure.sleep.assert_not_called()
    azure.vault_data.create_key.assert_not_called()


def test_default_collaborators_are_built_from_config(config):
    workflow = wf.VaultWorkflow(config, sleep=lambda seconds: None)

    assert workflow.resource_groups.subscription_id == "subscription-id"
    assert workflow.vault_management.subscription_id == "subscription-id"
    assert workflow.vault_data.authenticator.provider is workflow.token_provider
    assert workflow.vault_data.authenticator.authority_host == "https://login.microsoftonline.com"
