from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import ResourceGroup
from loguru import logger as log


class ResourceGroups:
    """
    Creates and deletes resource groups in one subscription.

    The client is built lazily from the management credential unless one is injected.
    """

    def __init__(self, credential=None, subscription_id: str = None, client: ResourceManagementClient = None):
        if client is None and (credential is None or not subscription_id):
            raise ValueError("[ResourceGroups] Provide either a client or a credential and subscription_id")
        self._credential = credential
        self.subscription_id = subscription_id
        self._client = client

    @property
    def client(self) -> ResourceManagementClient:
        if self._client is None:
            self._client = ResourceManagementClient(self._credential, self.subscription_id)
        return self._client

    def create_or_update(self, name: str, location: str) -> ResourceGroup:
        """
        Creates the group, or converges on it if it already exists.

        Args:
            name (str): Resource group name.
            location (str): Azure region, e.g. "westus".

        Returns:
            ResourceGroup: The group as reported by Azure.
        """
        group = self.client.resource_groups.create_or_update(name, ResourceGroup(location=location))
        log.debug(f"[ResourceGroups] Resource group ready: {name} ({location})")
        return group

    def delete(self, name: str) -> None:
        """Deletes the group and waits for the long-running operation to finish."""
        poller = self.client.resource_groups.begin_delete(name)
        poller.result()
        log.debug(f"[ResourceGroups] Resource group deleted: {name}")
