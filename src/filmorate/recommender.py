"""
Co-like recommendation engine.

"Users who liked what you liked also liked these": a neighbor is any other
user who liked at least one film the target liked, and each film liked by
neighbors (but not by the target) scores one point per neighbor who liked it.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass

from .config import DEFAULT_RECOMMENDATION_LIMIT
from .models import Film
from .storage import Storage
from .users import UserService

logger = logging.getLogger(__name__)


@dataclass
class Recommendation:
    film: Film
    score: int  # Number of neighbors who liked the film


class RecommendationService:
    def __init__(self, storage: Storage):
        self.storage = storage
        self.users = UserService(storage)

    def score_candidates(self, user_id: int) -> list[tuple[int, int]]:
        """
        Score every candidate film for `user_id`.

        Returns:
            (film_id, co_like_score) pairs, highest score first, ties by
            ascending film id. Empty when the user has no likes or no neighbors.
        """
        self.users.require_users(user_id)

        liked = self.storage.get_user_likes(user_id)
        if not liked:
            logger.debug(f"User {user_id} has no likes, nothing to recommend")
            return []

        neighbors = self.storage.get_neighbor_likes(user_id)
        if not neighbors:
            logger.debug(f"User {user_id} has no taste neighbors")
            return []

        scores: Counter[int] = Counter()
        for films in neighbors.values():
            scores.update(films - liked)

        logger.debug(f"User {user_id}: {len(neighbors)} neighbors, {len(scores)} candidate films")
        return sorted(scores.items(), key=lambda item: (-item[1], item[0]))

    def recommend_with_scores(self, user_id: int, limit: int | None = None) -> list[Recommendation]:
        limit = DEFAULT_RECOMMENDATION_LIMIT if limit is None else max(1, int(limit))
        top = self.score_candidates(user_id)[:limit]
        if not top:
            return []

        films = {f.id: f for f in self.storage.get_films([film_id for film_id, _ in top])}
        # A film deleted between the two reads simply drops out
        return [Recommendation(films[film_id], score) for film_id, score in top if film_id in films]

    def recommend(self, user_id: int, limit: int | None = None) -> list[Film]:
        """
        Recommend up to `limit` films the user has not liked yet.

        Args:
            user_id: Target user
            limit: Maximum number of films; None means DEFAULT_RECOMMENDATION_LIMIT,
                values below 1 are clamped to 1

        Raises:
            NotFoundError: if the user does not exist
        """
        recs = self.recommend_with_scores(user_id, limit)
        logger.info(f"Recommended {len(recs)} films to user {user_id}")
        return [r.film for r in recs]
