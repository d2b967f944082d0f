import pytest

from filmorate.exceptions import InvalidStateError, NotFoundError, ValidationError
from filmorate.models import FriendshipStatus


@pytest.fixture
def trio(make_user):
    return make_user("alice"), make_user("bob"), make_user("carol")


def test_request_is_pending_until_confirmed(services, trio):
    alice, bob, _ = trio
    services.friendships.send_friend_request(alice.id, bob.id)

    assert services.friendships.get_friendship_status(alice.id, bob.id) == FriendshipStatus.PENDING
    assert services.friendships.list_friends(alice.id) == []
    assert services.friendships.list_friends(bob.id) == []
    assert [u.id for u in services.friendships.list_pending_requests(bob.id)] == [alice.id]


def test_confirm_makes_friendship_mutual(services, trio):
    alice, bob, _ = trio
    services.friendships.send_friend_request(alice.id, bob.id)
    services.friendships.confirm_friend_request(bob.id, alice.id)

    assert [u.id for u in services.friendships.list_friends(alice.id)] == [bob.id]
    assert [u.id for u in services.friendships.list_friends(bob.id)] == [alice.id]
    assert services.friendships.get_friendship_status(bob.id, alice.id) == FriendshipStatus.CONFIRMED
    assert services.friendships.list_pending_requests(bob.id) == []


def test_confirm_without_request_fails(services, trio):
    alice, bob, _ = trio
    with pytest.raises(InvalidStateError):
        services.friendships.confirm_friend_request(bob.id, alice.id)


def test_sender_cannot_confirm_own_request(services, trio):
    alice, bob, _ = trio
    services.friendships.send_friend_request(alice.id, bob.id)
    with pytest.raises(InvalidStateError):
        services.friendships.confirm_friend_request(alice.id, bob.id)


def test_duplicate_request_fails(services, trio):
    alice, bob, _ = trio
    services.friendships.send_friend_request(alice.id, bob.id)
    with pytest.raises(InvalidStateError):
        services.friendships.send_friend_request(alice.id, bob.id)


def test_self_friendship_rejected(services, trio):
    alice, _, _ = trio
    with pytest.raises(ValidationError):
        services.friendships.send_friend_request(alice.id, alice.id)


def test_unknown_user_raises_not_found_without_mutation(services, trio):
    alice, _, _ = trio
    with pytest.raises(NotFoundError):
        services.friendships.send_friend_request(alice.id, 999)
    assert services.storage.stats()["friendships"] == 0

    with pytest.raises(NotFoundError):
        services.friendships.list_friends(999)


def test_remove_friend_clears_both_directions(services, trio):
    alice, bob, _ = trio
    services.friendships.send_friend_request(alice.id, bob.id)
    services.friendships.confirm_friend_request(bob.id, alice.id)

    services.friendships.remove_friend(bob.id, alice.id)

    assert services.friendships.list_friends(alice.id) == []
    assert services.friendships.list_friends(bob.id) == []
    assert services.friendships.get_friendship_status(alice.id, bob.id) is None

    # Removing again is a no-op
    services.friendships.remove_friend(alice.id, bob.id)


def test_remove_withdraws_pending_request(services, trio):
    alice, bob, _ = trio
    services.friendships.send_friend_request(alice.id, bob.id)
    services.friendships.remove_friend(alice.id, bob.id)
    assert services.friendships.list_pending_requests(bob.id) == []


def test_common_friends(services, make_user):
    a, b, c, d = (make_user(n) for n in ("a", "b", "c", "d"))

    def befriend(x, y):
        services.friendships.send_friend_request(x.id, y.id)
        services.friendships.confirm_friend_request(y.id, x.id)

    befriend(a, c)
    befriend(b, c)
    befriend(a, d)
    # d only has a pending request from b, so it is not a common friend
    services.friendships.send_friend_request(b.id, d.id)

    common = services.friendships.common_friends(a.id, b.id)
    assert [u.id for u in common] == [c.id]
    assert services.friendships.common_friends(b.id, a.id) == common
    assert [u.id for u in services.friendships.common_friends(c.id, d.id)] == [a.id]


def test_deleted_user_disappears_from_friend_lists(services, trio):
    alice, bob, _ = trio
    services.friendships.send_friend_request(alice.id, bob.id)
    services.friendships.confirm_friend_request(bob.id, alice.id)

    services.users.delete_user(bob.id)
    assert services.friendships.list_friends(alice.id) == []
