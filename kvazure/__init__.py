"""
Azure collaborators and the provisioning workflow that drives them.
"""

from kvazure.data import VaultData
from kvazure.identity import (
    Challenge,
    ChallengeAuthenticator,
    Credential,
    MsalTokenProvider,
    TokenProvider,
)
from kvazure.ids import WorkflowNames, generate_random_id
from kvazure.resources import ResourceGroups
from kvazure.vault import VaultManagement
from kvazure.workflow import VaultWorkflow, WorkflowResult, run

__all__ = [
    "Challenge",
    "ChallengeAuthenticator",
    "Credential",
    "MsalTokenProvider",
    "TokenProvider",
    "ResourceGroups",
    "VaultManagement",
    "VaultData",
    "WorkflowNames",
    "generate_random_id",
    "VaultWorkflow",
    "WorkflowResult",
    "run",
]
