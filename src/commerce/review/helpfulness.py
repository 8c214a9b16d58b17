"""Helpfulness votes: registering reviews from the workflow and voting on them."""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Identifier, Integer, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from commerce.domain import commerce
from commerce.review.review import Review

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Review")
class RegisterReview:
    review_id = Identifier(required=True)
    product_id = Identifier(required=True)
    author_id = Identifier(required=True)
    rating = Integer(required=True, min_value=1, max_value=5)
    title = String(max_length=200)


@commerce.command(part_of="Review")
class MarkReviewHelpful:
    review_id = Identifier(required=True)
    voter_id = Identifier(required=True)
    is_helpful = Boolean(required=True)


@commerce.command_handler(part_of=Review)
class ReviewHelpfulnessHandler:
    @handle(RegisterReview)
    def register_review(self, command):
        review = Review.register(
            review_id=command.review_id,
            product_id=command.product_id,
            author_id=command.author_id,
            rating=command.rating,
            title=command.title,
        )
        current_domain.repository_for(Review).add(review)
        return str(review.id)

    @handle(MarkReviewHelpful)
    def mark_helpful(self, command):
        repo = current_domain.repository_for(Review)
        review = repo.get(command.review_id)

        changed = review.mark_helpful(command.voter_id, command.is_helpful)
        if changed:
            repo.add(review)
        logger.info(
            "Helpfulness vote",
            review_id=str(review.id),
            voter_id=str(command.voter_id),
            changed=changed,
            helpful_count=review.helpful_count,
        )
        return changed


def is_helpful_by_user(review_id, voter_id) -> bool:
    """Pure read; an unknown review has no helpful votes."""
    try:
        review = current_domain.repository_for(Review).get(str(review_id))
    except ObjectNotFoundError:
        return False
    return review.is_helpful_by(voter_id)
