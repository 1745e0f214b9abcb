"""Order status state machine.

pending -> confirmed -> processing -> shipped -> delivered, with forward
jumps allowed. cancelled is reachable from anything short of delivered
and is terminal.
"""
from core.errors import BusinessRuleError

FLOW = ("pending", "confirmed", "processing", "shipped", "delivered")
CANCELLED = "cancelled"
NOTIFY_ON = frozenset(FLOW[1:]) | {CANCELLED}
# Statuses past pending that mean the goods left stock
FULFILLING = frozenset(FLOW[1:])


def check_transition(current: str, target: str) -> bool:
    """Return True for a real transition, False for a no-op; raise for an illegal move."""
    if current == target:
        return False
    if current == CANCELLED:
        raise BusinessRuleError("Cancelled orders cannot change status")
    if target == CANCELLED:
        if current == "delivered":
            raise BusinessRuleError("Delivered orders cannot be cancelled")
        return True
    if FLOW.index(target) < FLOW.index(current):
        raise BusinessRuleError(f"Cannot move order from {current} back to {target}")
    return True


def deducts_inventory(previous: str, target: str) -> bool:
    """Stock leaves exactly once: on the first move out of pending into fulfillment."""
    return previous == "pending" and target in FULFILLING
