"""
Resource library rating and recommendation service.

Keeps each resource's average rating and review count in step with its
reviews, and serves global, personalized and collaborative recommendations.
"""
