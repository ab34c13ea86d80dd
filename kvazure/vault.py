from typing import Dict, List, Optional

from azure.mgmt.keyvault import KeyVaultManagementClient
from azure.mgmt.keyvault.models import (
    AccessPolicyEntry,
    Permissions,
    Sku,
    Vault,
    VaultCreateOrUpdateParameters,
    VaultProperties,
)
from loguru import logger as log

INITIAL_KEY_PERMISSIONS = ["get", "create", "delete", "list", "update", "import", "backup", "restore"]
GRANT_KEY_PERMISSIONS = ["get", "list", "import"]
SECRET_PERMISSIONS_ALL = ["all"]


class VaultManagement:
    """
    Management-plane operations on Key Vault resources: create, get, delete and access policies.

    Responsibilities:
    - Build access-policy entries and vault definitions from plain identifiers
    - Create or update a vault and wait for the long-running operation
    - Append an access-policy entry to an existing vault without touching the others
    """

    def __init__(self, credential=None, subscription_id: str = None, client: KeyVaultManagementClient = None):
        if client is None and (credential is None or not subscription_id):
            raise ValueError("[VaultManagement] Provide either a client or a credential and subscription_id")
        self._credential = credential
        self.subscription_id = subscription_id
        self._client = client

    @property
    def client(self) -> KeyVaultManagementClient:
        if self._client is None:
            self._client = KeyVaultManagementClient(self._credential, self.subscription_id)
        return self._client

    @staticmethod
    def access_policy(
            tenant_id: str,
            object_id: str,
            keys: List[str],
            secrets: List[str],
            application_id: Optional[str] = None,
    ) -> AccessPolicyEntry:
        """
        Builds one access-policy entry.

        Raises:
            ValueError: If tenant_id or object_id is empty; Azure rejects such entries.
        """
        if not tenant_id:
            raise ValueError("[VaultManagement] An access policy needs a tenant id")
        if not object_id:
            raise ValueError(f"[VaultManagement] An access policy needs an object id (tenant {tenant_id})")

        return AccessPolicyEntry(
            tenant_id=tenant_id,
            object_id=object_id,
            application_id=application_id or None,
            permissions=Permissions(keys=list(keys), secrets=list(secrets)),
        )

    def create_or_update(
            self,
            group: str,
            name: str,
            location: str,
            tenant_id: str,
            access_policies: List[AccessPolicyEntry],
            tags: Optional[Dict[str, str]] = None,
            enabled_for_deployment: bool = False,
    ) -> Vault:
        """
        Creates the vault (standard SKU) or replaces its definition.

        Returns:
            Vault: The provisioned vault; `properties.vault_uri` is populated by Azure.
        """
        properties = VaultProperties(
            tenant_id=tenant_id,
            sku=Sku(family="A", name="standard"),
            access_policies=list(access_policies),
            enabled_for_deployment=enabled_for_deployment,
        )
        params = VaultCreateOrUpdateParameters(location=location, properties=properties, tags=tags or {})
        return self._push(group, name, params)

    def get(self, group: str, name: str) -> Vault:
        return self.client.vaults.get(group, name)

    def delete(self, group: str, name: str) -> None:
        self.client.vaults.delete(group, name)
        log.debug(f"[VaultManagement] Vault deleted: {name} (resource group {group})")

    def grant_access(self, group: str, name: str, entry: AccessPolicyEntry) -> Vault:
        """
        Fetches the current vault, appends `entry` to its access policies and pushes it back.

        Existing entries are kept as they are, in order.

        Returns:
            Vault: The updated vault.
        """
        vault = self.get(group, name)
        properties = vault.properties

        policies = list(properties.access_policies or [])
        policies.append(entry)
        properties.access_policies = policies

        params = VaultCreateOrUpdateParameters(location=vault.location, properties=properties, tags=vault.tags)
        return self._push(group, name, params)

    def _push(self, group: str, name: str, params: VaultCreateOrUpdateParameters) -> Vault:
        poller = self.client.vaults.begin_create_or_update(group, name, params)
        vault = poller.result()
        log.debug(
            f"[VaultManagement] Vault {name} now has "
            f"{len(vault.properties.access_policies or [])} access policy entr(y/ies)"
        )
        return vault
