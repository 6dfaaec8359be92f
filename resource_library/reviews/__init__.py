"""
Reviews and the rating aggregate.

Responsibilities:
- Store review records, one per reviewer and resource.
- Keep each resource's average rating and review count in step with its reviews.
- Provide the create/update/delete code path used by the API.
"""
