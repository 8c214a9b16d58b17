"""Domain events for the Review mirror."""

from protean.fields import Boolean, DateTime, Identifier, Integer

from commerce.domain import commerce


@commerce.event(part_of="Review")
class ReviewRegistered:
    """A published review was mirrored from the review workflow."""

    __version__ = 1

    review_id = Identifier(required=True)
    product_id = Identifier(required=True)
    author_id = Identifier(required=True)
    rating = Integer(required=True)


@commerce.event(part_of="Review")
class HelpfulVoteRecorded:
    """A voter's helpfulness vote was recorded or flipped."""

    __version__ = 1

    review_id = Identifier(required=True)
    voter_id = Identifier(required=True)
    is_helpful = Boolean(required=True)
    helpful_count = Integer(required=True)
    voted_at = DateTime(required=True)
