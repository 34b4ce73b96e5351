"""
StackSave contract ABI fragments used by the mirror.

Only the goal read and the three tracked events are needed; transaction
submission lives outside this service.
"""

_GOAL_TUPLE = {
    "name": "goal",
    "type": "tuple",
    "components": [
        {"name": "id", "type": "uint256"},
        {"name": "owner", "type": "address"},
        {"name": "currency", "type": "address"},
        {"name": "mode", "type": "uint8"},
        {"name": "targetAmount", "type": "uint256"},
        {"name": "duration", "type": "uint256"},
        {"name": "donationPercentage", "type": "uint256"},
        {"name": "depositedAmount", "type": "uint256"},
        {"name": "createdAt", "type": "uint256"},
        {"name": "lastDepositTime", "type": "uint256"},
        {"name": "status", "type": "uint8"},
    ],
}


def _event(name, *fields):
    """Build an event ABI entry; the first two fields are indexed."""
    inputs = []
    for index, (field_name, field_type) in enumerate(fields):
        inputs.append({
            "name": field_name,
            "type": field_type,
            "indexed": index < 2,
        })
    return {"type": "event", "name": name, "anonymous": False, "inputs": inputs}


STACKSAVE_ABI = [
    {
        "type": "function",
        "name": "getGoalDetails",
        "stateMutability": "view",
        "inputs": [{"name": "goalId", "type": "uint256"}],
        "outputs": [
            _GOAL_TUPLE,
            {"name": "currentValue", "type": "uint256"},
            {"name": "yieldEarned", "type": "uint256"},
        ],
    },
    _event(
        "Deposited",
        ("goalId", "uint256"),
        ("user", "address"),
        ("amount", "uint256"),
        ("vaultShares", "uint256"),
    ),
    _event(
        "WithdrawnCompleted",
        ("goalId", "uint256"),
        ("user", "address"),
        ("principal", "uint256"),
        ("yield", "uint256"),
        ("userYield", "uint256"),
        ("donatedYield", "uint256"),
    ),
    _event(
        "WithdrawnEarly",
        ("goalId", "uint256"),
        ("user", "address"),
        ("amount", "uint256"),
        ("penalty", "uint256"),
        ("penaltyToRewards", "uint256"),
        ("penaltyToTreasury", "uint256"),
    ),
]
