import random
from dataclasses import dataclass
from typing import Optional

RESOURCE_GROUP_PREFIX = "testrg"
VAULT_PREFIX = "testkv"


def generate_random_id(prefix: str, rng: Optional[random.Random] = None) -> str:
    """prefix + a random integer in [0, 9999], e.g. 'testrg4821'."""
    rng = rng or random
    return f"{prefix}{rng.randrange(10000)}"


@dataclass(frozen=True)
class WorkflowNames:
    """Names generated once per run for every resource the workflow creates."""
    resource_group: str
    vault_name: str

    @classmethod
    def generate(cls, rng: Optional[random.Random] = None) -> "WorkflowNames":
        return cls(
            resource_group=generate_random_id(RESOURCE_GROUP_PREFIX, rng),
            vault_name=generate_random_id(VAULT_PREFIX, rng),
        )
