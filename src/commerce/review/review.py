"""Review aggregate: the helpfulness side of a product review.

The review workflow itself is external. Here a review holds one vote per
voter and a denormalized helpful counter that always equals the number of
votes with `is_helpful=True`.
"""

from datetime import UTC, datetime

from protean import atomic_change
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String

from commerce.domain import commerce
from commerce.errors import ConsistencyViolation
from commerce.review.events import HelpfulVoteRecorded, ReviewRegistered


@commerce.entity(part_of="Review")
class HelpfulVote:
    voter_id = Identifier(required=True)
    is_helpful = Boolean(required=True)
    voted_at = DateTime(required=True)
    updated_at = DateTime()


@commerce.aggregate
class Review:
    product_id = Identifier(required=True)
    author_id = Identifier(required=True)
    rating = Integer(required=True, min_value=1, max_value=5)
    title = String(max_length=200)
    votes = HasMany(HelpfulVote)
    helpful_count = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(cls, review_id, product_id, author_id, rating, title=None):
        now = datetime.now(UTC)
        review = cls(
            id=review_id,
            product_id=product_id,
            author_id=author_id,
            rating=rating,
            title=title,
            helpful_count=0,
            created_at=now,
            updated_at=now,
        )
        review.raise_(
            ReviewRegistered(
                review_id=str(review.id),
                product_id=str(product_id),
                author_id=str(author_id),
                rating=rating,
            )
        )
        return review

    def vote_of(self, voter_id):
        return next((v for v in self.votes if str(v.voter_id) == str(voter_id)), None)

    def is_helpful_by(self, voter_id) -> bool:
        vote = self.vote_of(voter_id)
        return bool(vote and vote.is_helpful)

    def mark_helpful(self, voter_id, is_helpful: bool) -> bool:
        """Record or flip a voter's vote. Returns False when nothing changed."""
        if str(voter_id) == str(self.author_id):
            raise ValidationError({"voter_id": ["Cannot vote on your own review"]})

        now = datetime.now(UTC)
        existing = self.vote_of(voter_id)
        if existing is not None and bool(existing.is_helpful) == bool(is_helpful):
            return False

        with atomic_change(self):
            if existing is None:
                self.add_votes(HelpfulVote(voter_id=voter_id, is_helpful=is_helpful, voted_at=now))
                if is_helpful:
                    self.helpful_count = (self.helpful_count or 0) + 1
            else:
                existing.is_helpful = is_helpful
                existing.updated_at = now
                self.helpful_count = (self.helpful_count or 0) + (1 if is_helpful else -1)
            self.updated_at = now

        self._verify_helpful_count()
        self.raise_(
            HelpfulVoteRecorded(
                review_id=str(self.id),
                voter_id=str(voter_id),
                is_helpful=is_helpful,
                helpful_count=self.helpful_count,
                voted_at=now,
            )
        )
        return True

    def _verify_helpful_count(self):
        expected = sum(1 for vote in self.votes if vote.is_helpful)
        if self.helpful_count != expected:
            raise ConsistencyViolation(
                f"Review {self.id} helpful count {self.helpful_count} does not match {expected} votes"
            )
