from datetime import datetime
from typing import List

from azure.keyvault.keys import KeyClient, KeyProperties, KeyVaultKey
from azure.keyvault.secrets import KeyVaultSecret, SecretClient, SecretProperties
from loguru import logger as log

from kvazure.identity import ChallengeAuthenticator


class VaultData:
    """
    Data-plane operations on keys and secrets inside a provisioned vault.

    Each call opens its own SDK client against `vault_uri`, so each call goes
    through its own challenge/response exchange with the authenticator.
    """

    def __init__(self, authenticator: ChallengeAuthenticator, key_client_cls=KeyClient, secret_client_cls=SecretClient):
        self.authenticator = authenticator
        self._key_client_cls = key_client_cls
        self._secret_client_cls = secret_client_cls

    def _keys(self, vault_uri: str) -> KeyClient:
        return self._key_client_cls(vault_url=vault_uri, credential=self.authenticator)

    def _secrets(self, vault_uri: str) -> SecretClient:
        return self._secret_client_cls(vault_url=vault_uri, credential=self.authenticator)

    def create_key(
            self,
            vault_uri: str,
            name: str,
            kty: str,
            key_ops: List[str],
            not_before: datetime,
            expires: datetime,
    ) -> KeyVaultKey:
        with self._keys(vault_uri) as client:
            key = client.create_key(
                name,
                kty,
                key_operations=list(key_ops),
                not_before=not_before,
                expires_on=expires,
            )
        log.debug(f"[VaultData] Created key {name} ({kty}) in {vault_uri}")
        return key

    def get_keys(self, vault_uri: str) -> List[KeyProperties]:
        with self._keys(vault_uri) as client:
            return list(client.list_properties_of_keys())

    def set_secret(
            self,
            vault_uri: str,
            name: str,
            value: str,
            content_type: str,
            not_before: datetime,
            expires: datetime,
    ) -> KeyVaultSecret:
        with self._secrets(vault_uri) as client:
            secret = client.set_secret(
                name,
                value,
                content_type=content_type,
                not_before=not_before,
                expires_on=expires,
            )
        log.debug(f"[VaultData] Set secret {name} in {vault_uri}")
        return secret

    def get_secrets(self, vault_uri: str) -> List[SecretProperties]:
        with self._secrets(vault_uri) as client:
            return list(client.list_properties_of_secrets())
