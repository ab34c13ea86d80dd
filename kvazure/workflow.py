"""
End-to-end Key Vault provisioning workflow.

Authenticates, creates a resource group and a vault, waits for the vault's DNS
registration, exercises keys and secrets on the data plane, grants a second
principal access, then deletes everything it created. One linear pass, no retries.
"""
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from loguru import logger as log

from kvazure.data import VaultData
from kvazure.identity import (
    MANAGEMENT_AUDIENCE,
    ChallengeAuthenticator,
    MsalTokenProvider,
    TokenProvider,
    management_credential,
    scope_for,
)
from kvazure.ids import WorkflowNames
from kvazure.resources import ResourceGroups
from kvazure.vault import (
    GRANT_KEY_PERMISSIONS,
    INITIAL_KEY_PERMISSIONS,
    SECRET_PERMISSIONS_ALL,
    VaultManagement,
)
from kvcontext.config import WorkflowConfig
from kvcontext.logger import log_func
from kvutil.error_handling import CleanupError, ErrorHandling

KEY_NAME = "testkeyrandom99"
KEY_TYPE = "RSA"
KEY_OPERATIONS = ["encrypt", "decrypt", "sign", "verify", "wrapKey", "unwrapKey"]

SECRET_NAME = "mysecret"
SECRET_VALUE = "my shared secret"
SECRET_CONTENT_TYPE = "test secret"

NOT_BEFORE = datetime(2016, 1, 1, 8, 0, 0, tzinfo=timezone.utc)
EXPIRES = datetime(2050, 2, 2, 8, 0, 0, tzinfo=timezone.utc)


@dataclass
class WorkflowResult:
    """What one run produced. Filled in step by step; returned only when every step succeeded."""
    resource_group: str
    vault_name: str
    location: str
    vault_uri: Optional[str] = None
    key_id: Optional[str] = None
    key_count: int = 0
    secret_id: Optional[str] = None
    secret_count: int = 0
    access_policy_count: int = 0
    progress: List[str] = field(default_factory=list)
    cleanup_errors: List[CleanupError] = field(default_factory=list)

    @property
    def cleaned_up(self) -> bool:
        return not self.cleanup_errors


class VaultWorkflow:
    """
    Runs the provisioning sequence exactly once.

    Collaborators default to the Azure-backed implementations; each can be injected.

    Args:
        config (WorkflowConfig): Validated configuration.
        token_provider (TokenProvider): Data-plane token exchange. Defaults to MsalTokenProvider.
        credential: Management-plane TokenCredential. Defaults to a ClientSecretCredential.
        resource_groups (ResourceGroups): Resource-group service client.
        vault_management (VaultManagement): Vault management service client.
        vault_data (VaultData): Vault data service client.
        names (WorkflowNames): Resource names; generated when omitted.
        sleep (Callable[[float], None]): Used for the settle delay.
    """

    def __init__(
            self,
            config: WorkflowConfig,
            *,
            token_provider: Optional[TokenProvider] = None,
            credential=None,
            resource_groups: Optional[ResourceGroups] = None,
            vault_management: Optional[VaultManagement] = None,
            vault_data: Optional[VaultData] = None,
            names: Optional[WorkflowNames] = None,
            sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.names = names or WorkflowNames.generate()
        self.token_provider = token_provider or MsalTokenProvider(config)
        self.credential = credential or management_credential(config)

        self.resource_groups = resource_groups or ResourceGroups(self.credential, config.subscription_id)
        self.vault_management = vault_management or VaultManagement(self.credential, config.subscription_id)
        self.vault_data = vault_data or VaultData(
            ChallengeAuthenticator(self.token_provider, authority_host=config.authority_host)
        )
        self._sleep = sleep
        self.result: Optional[WorkflowResult] = None

    # ─── Orchestration ───────────────────────────────────────────────────────

    def run(self) -> WorkflowResult:
        """
        Executes steps 1-9, then cleanup.

        Returns:
            WorkflowResult: On success, after cleanup has run.

        Raises:
            Exception: The first step failure, unchanged, after cleanup has been attempted.
        """
        result = WorkflowResult(
            resource_group=self.names.resource_group,
            vault_name=self.names.vault_name,
            location=self.config.location,
        )
        self.result = result

        with log_func("VaultWorkflow"):
            try:
                self.login()
                self.create_resource_group()
                vault_uri = self.create_key_vault()
                self.settle()
                self.create_key(vault_uri)
                self.get_keys(vault_uri)
                self.set_secret(vault_uri)
                self.get_secrets(vault_uri)
                self.update_key_vault()
            except Exception as e:
                log.error(f"[VaultWorkflow] Workflow failed: {type(e).__name__}: {e}")
                self.cleanup()
                raise

            self.cleanup()

        log.info(f"[VaultWorkflow] Workflow completed for vault {self.names.vault_name}")
        return result

    @contextmanager
    def _step(self, number: int, description: str):
        message = f"{number}. {description}"
        self.result.progress.append(message)
        with log_func(f"step{number}"):
            log.info(f"[VaultWorkflow] {message}")
            yield

    # ─── Steps ───────────────────────────────────────────────────────────────

    def login(self) -> None:
        with self._step(1, f"Acquiring management credential for client {self.config.client_id}"):
            self.credential.get_token(scope_for(MANAGEMENT_AUDIENCE))

    def create_resource_group(self) -> None:
        with self._step(2, f"Creating resource group: {self.names.resource_group}"):
            self.resource_groups.create_or_update(self.names.resource_group, self.config.location)

    def create_key_vault(self) -> str:
        description = f"Creating key vault {self.names.vault_name} in resource group: {self.names.resource_group}"
        with self._step(3, description):
            policy = self.vault_management.access_policy(
                tenant_id=self.config.domain,
                object_id=self.config.object_id,
                keys=INITIAL_KEY_PERMISSIONS,
                secrets=SECRET_PERMISSIONS_ALL,
            )
            vault = self.vault_management.create_or_update(
                self.names.resource_group,
                self.names.vault_name,
                location=self.config.location,
                tenant_id=self.config.domain,
                access_policies=[policy],
                tags={},
                enabled_for_deployment=False,
            )

            vault_uri = getattr(vault.properties, "vault_uri", None)
            if not vault_uri:
                raise RuntimeError(f"[VaultWorkflow] Vault {self.names.vault_name} was created but has no URI")

            self.result.vault_uri = vault_uri
            self.result.access_policy_count = len(vault.properties.access_policies or [])
            log.info(f"[VaultWorkflow] Vault URI: {vault_uri}")
            return vault_uri

    def settle(self) -> None:
        # Vault DNS registration is asynchronous and exposes no readiness signal.
        delay_ms = int(self.config.settle_delay_ms)
        with self._step(4, f"Waiting {delay_ms} ms for vault DNS registration"):
            self._sleep(delay_ms / 1000.0)

    def create_key(self, vault_uri: str) -> None:
        with self._step(5, f"Creating key {KEY_NAME} in vault: {self.names.vault_name}"):
            key = self.vault_data.create_key(
                vault_uri,
                KEY_NAME,
                KEY_TYPE,
                key_ops=KEY_OPERATIONS,
                not_before=NOT_BEFORE,
                expires=EXPIRES,
            )
            self.result.key_id = getattr(key, "id", None)

    def get_keys(self, vault_uri: str) -> None:
        with self._step(6, f"Getting keys from vault: {self.names.vault_name}"):
            keys = self.vault_data.get_keys(vault_uri)
            self.result.key_count = len(keys)
            log.info(f"[VaultWorkflow] Found {len(keys)} key(s)")

    def set_secret(self, vault_uri: str) -> None:
        with self._step(7, f"Setting secret {SECRET_NAME} in vault: {self.names.vault_name}"):
            secret = self.vault_data.set_secret(
                vault_uri,
                SECRET_NAME,
                SECRET_VALUE,
                content_type=SECRET_CONTENT_TYPE,
                not_before=NOT_BEFORE,
                expires=EXPIRES,
            )
            self.result.secret_id = getattr(secret, "id", None)

    def get_secrets(self, vault_uri: str) -> None:
        with self._step(8, f"Getting secrets from vault: {self.names.vault_name}"):
            secrets = self.vault_data.get_secrets(vault_uri)
            self.result.secret_count = len(secrets)
            log.info(f"[VaultWorkflow] Found {len(secrets)} secret(s)")

    def update_key_vault(self) -> None:
        with self._step(9, f"Updating key vault: {self.names.vault_name}"):
            entry = self.vault_management.access_policy(
                tenant_id=self.config.domain,
                object_id=self.config.object_id_for_keyvault,
                application_id=self.config.keyvault_sp,
                keys=GRANT_KEY_PERMISSIONS,
                secrets=SECRET_PERMISSIONS_ALL,
            )
            vault = self.vault_management.grant_access(self.names.resource_group, self.names.vault_name, entry)
            self.result.access_policy_count = len(vault.properties.access_policies or [])

    # ─── Teardown ────────────────────────────────────────────────────────────

    def cleanup(self) -> List[CleanupError]:
        """
        Deletes the vault, then the resource group. Each deletion is attempted once,
        independently; failures are logged and recorded, never raised.
        """
        group = self.names.resource_group
        vault_name = self.names.vault_name
        errors = []

        with log_func("cleanup"):
            log.info(f"[VaultWorkflow] 10. Deleting vault {vault_name} and resource group {group}")

            error = ErrorHandling.isolate(lambda: self.vault_management.delete(group, vault_name), label="delete vault")
            if error is not None:
                errors.append(CleanupError("vault", vault_name, error))

            error = ErrorHandling.isolate(lambda: self.resource_groups.delete(group), label="delete resource group")
            if error is not None:
                errors.append(CleanupError("resource group", group, error))

        if self.result is not None:
            self.result.cleanup_errors.extend(errors)
        if errors:
            log.warning(f"[VaultWorkflow] Cleanup finished with {len(errors)} error(s)")
        return errors


def run(config: WorkflowConfig, **collaborators) -> WorkflowResult:
    """Validates `config` and runs one VaultWorkflow with the given collaborators."""
    return VaultWorkflow(config.validate(), **collaborators).run()
