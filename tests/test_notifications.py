"""Tests for notification subscriptions."""

from optimizely_destination.notifications import (
    NotificationType,
    Subscription,
    SubscriptionSet,
)


class TestSubscription:
    """Tests for Subscription class."""

    def test_cancel_unsubscribes_once(self):
        """cancel() should call the unsubscribe handle once."""
        calls = []
        subscription = Subscription(NotificationType.TRACK, lambda: calls.append(1))

        subscription.cancel()
        subscription.cancel()

        assert calls == [1]
        assert subscription.cancelled is True


class TestSubscriptionSet:
    """Tests for SubscriptionSet class."""

    def test_release_all(self):
        """release_all() should cancel every subscription and empty the set."""
        released = []
        subscriptions = SubscriptionSet()
        for notification_type in (NotificationType.DECISION, NotificationType.TRACK):
            subscriptions.add(
                Subscription(notification_type, lambda t=notification_type: released.append(t))
            )

        assert len(subscriptions) == 2
        assert subscriptions.release_all() == 2
        assert released == [NotificationType.DECISION, NotificationType.TRACK]
        assert len(subscriptions) == 0

    def test_release_all_continues_after_failure(self, caplog):
        """A failing unsubscribe should not prevent releasing the rest."""
        released = []

        def broken():
            raise RuntimeError("gone")

        subscriptions = SubscriptionSet()
        subscriptions.add(Subscription(NotificationType.DECISION, broken))
        subscriptions.add(Subscription(NotificationType.TRACK, lambda: released.append("track")))

        assert subscriptions.release_all() == 2
        assert released == ["track"]
        assert any("decision" in r.message for r in caplog.records)

    def test_release_empty(self):
        """Releasing an empty set does nothing."""
        assert SubscriptionSet().release_all() == 0
