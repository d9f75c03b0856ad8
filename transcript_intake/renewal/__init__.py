from .renewer import RenewerState, SubscriptionRenewer
from .scheduler import RenewalScheduler

__all__ = ["RenewalScheduler", "RenewerState", "SubscriptionRenewer"]
