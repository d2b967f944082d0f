import itertools

import pytest

from filmorate.exceptions import InvalidStateError, NotFoundError
from filmorate.likes import rank_by_popularity
from filmorate.models import Film


def test_like_is_recorded_once(services, make_film, make_user):
    film = make_film()
    user = make_user("alice")

    services.likes.add_like(film.id, user.id)
    with pytest.raises(InvalidStateError):
        services.likes.add_like(film.id, user.id)

    assert services.likes.like_count(film.id) == 1
    assert services.films.get_film(film.id).likes == {user.id}


def test_remove_missing_like_is_noop(services, make_film, make_user):
    film = make_film()
    user = make_user("alice")

    services.likes.remove_like(film.id, user.id)
    services.likes.add_like(film.id, user.id)
    services.likes.remove_like(film.id, user.id)
    assert services.likes.like_count(film.id) == 0


def test_like_unknown_entities_raises_not_found_without_mutation(services, make_film, make_user):
    film = make_film()
    user = make_user("alice")

    with pytest.raises(NotFoundError) as exc:
        services.likes.add_like(999, user.id)
    assert exc.value.entity == "Film"

    with pytest.raises(NotFoundError) as exc:
        services.likes.add_like(film.id, 999)
    assert exc.value.entity == "User"

    assert services.storage.get_like_counts() == {}


def test_popular_films_ordering(services, make_film, make_user):
    a, b, c = make_film("A"), make_film("B"), make_film("C")
    u1, u2 = make_user("u1"), make_user("u2")

    services.likes.add_like(c.id, u1.id)
    services.likes.add_like(c.id, u2.id)
    services.likes.add_like(a.id, u1.id)

    assert [f.id for f in services.likes.popular_films(10)] == [c.id, a.id, b.id]
    assert [f.id for f in services.likes.popular_films(1)] == [c.id]


def test_popular_films_default_and_clamped_count(services, make_film):
    for i in range(12):
        make_film(f"F{i}")

    assert len(services.likes.popular_films()) == 10
    assert len(services.likes.popular_films(0)) == 1
    assert len(services.likes.popular_films(-3)) == 1


def test_popular_films_ties_broken_by_id(services, make_film):
    films = [make_film(f"F{i}") for i in range(3)]
    assert [f.id for f in services.likes.popular_films(3)] == [f.id for f in films]


def test_rank_by_popularity_ignores_input_order():
    films = [Film(id=i, name=str(i)) for i in (1, 2, 3, 4)]
    counts = {2: 5, 3: 5, 4: 1}
    expected = [2, 3, 4, 1]

    for perm in itertools.permutations(films):
        assert [f.id for f in rank_by_popularity(list(perm), counts)] == expected


def test_common_liked_films(services, make_film, make_user):
    a, b, c = make_film("A"), make_film("B"), make_film("C")
    alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")

    for film in (a, b):
        services.likes.add_like(film.id, alice.id)
    for film in (b, c, a):
        services.likes.add_like(film.id, bob.id)
    services.likes.add_like(b.id, carol.id)

    assert [f.id for f in services.likes.common_liked_films(alice.id, bob.id)] == [b.id, a.id]
    assert services.likes.common_liked_films(alice.id, carol.id)[0].id == b.id


def test_deleting_film_removes_its_likes(services, make_film, make_user):
    film = make_film()
    user = make_user("alice")
    services.likes.add_like(film.id, user.id)

    services.films.delete_film(film.id)
    assert services.storage.get_user_likes(user.id) == set()
