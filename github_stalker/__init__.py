"""
A service that watches GitHub users and repositories
and notifies subscribers about new activity.
"""

from . import config
from .monitor import GitHubStalker
from .notifier import NotificationService
from .scheduler import Scheduler
from .store import SubscriptionStore
from .subscriptions import SubscriptionManager
