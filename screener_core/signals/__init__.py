"""Signal engine: named scoring policies behind one protocol.

Public API:
- SignalPolicy: Protocol that all policies implement
- TallyPolicy ("tally") and StrengthPolicy ("strength")
- POLICIES / create_policy: lookup by policy name
"""

from screener_core.signals.protocol import SignalPolicy
from screener_core.signals.strength import StrengthPolicy, strength_score
from screener_core.signals.tally import TallyPolicy

POLICIES: dict[str, type] = {
    TallyPolicy.name: TallyPolicy,
    StrengthPolicy.name: StrengthPolicy,
}


def create_policy(name: str) -> SignalPolicy:
    """Create a policy instance by name.

    Raises:
        KeyError: If no policy is known under the given name.
    """
    try:
        return POLICIES[name]()
    except KeyError:
        available = ", ".join(sorted(POLICIES))
        raise KeyError(f"Unknown signal policy '{name}'. Available: {available}") from None


__all__ = [
    "SignalPolicy",
    "POLICIES",
    "create_policy",
    "TallyPolicy",
    "StrengthPolicy",
    "strength_score",
]
