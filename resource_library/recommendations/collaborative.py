"""
Collaborative filtering over the review stream.

The user × resource rating matrix is built from the review DataFrame (missing
ratings are 0) and similarities are plain cosine similarities of its rows
(users) or columns (resources).

* User-based: neighbours whose similarity to the user reaches the threshold
  score every resource the user has not rated with ``Σ sim·rating / Σ sim``.
* Item-based: each resource the user rated lends its rating to similar,
  unrated resources, again normalised by ``Σ sim``.
* Hybrid: a weighted sum of both score maps.
"""
from __future__ import annotations

import pandas as pd
from sklearn.metrics.pairwise import cosine_similarity


def rating_matrix(frame: pd.DataFrame) -> pd.DataFrame:
    """Pivot a review frame into a reviewer × resource rating matrix."""
    return frame.pivot_table(
        index="reviewer_id",
        columns="resource_id",
        values="rating",
        aggfunc="mean",
        fill_value=0.0,
    )


def _normalised(weighted: pd.Series, weight_sum: pd.Series) -> dict[str, float]:
    mask = weight_sum > 0
    scores = weighted[mask] / weight_sum[mask]
    return {str(rid): float(score) for rid, score in scores.items()}


def user_based_scores(matrix: pd.DataFrame, user_id: str, threshold: float) -> dict[str, float]:
    if user_id not in matrix.index:
        return {}

    sims = cosine_similarity(matrix.values)
    user_sims = pd.Series(sims[matrix.index.get_loc(user_id)], index=matrix.index)
    neighbours = user_sims.drop(user_id)
    neighbours = neighbours[neighbours >= threshold]
    if neighbours.empty:
        return {}

    unseen = matrix.columns[matrix.loc[user_id] == 0]
    neighbour_ratings = matrix.loc[neighbours.index, unseen]
    rated = (neighbour_ratings > 0).astype(float)

    weighted = neighbour_ratings.mul(neighbours, axis=0).sum()
    weight_sum = rated.mul(neighbours, axis=0).sum()
    return _normalised(weighted, weight_sum)


def item_based_scores(matrix: pd.DataFrame, user_id: str, threshold: float) -> dict[str, float]:
    if user_id not in matrix.index:
        return {}

    user_ratings = matrix.loc[user_id]
    rated = user_ratings[user_ratings > 0]
    unseen = matrix.columns[user_ratings == 0]
    if rated.empty or unseen.empty:
        return {}

    item_sims = pd.DataFrame(
        cosine_similarity(matrix.T.values),
        index=matrix.columns,
        columns=matrix.columns,
    )
    sims = item_sims.loc[rated.index, unseen]
    sims = sims.where(sims >= threshold, 0.0)

    weighted = sims.mul(rated, axis=0).sum()
    weight_sum = sims.sum()
    return _normalised(weighted, weight_sum)


def hybrid_scores(
    frame: pd.DataFrame,
    user_id: str,
    threshold: float = 0.3,
    user_weight: float = 0.5,
    item_weight: float = 0.5,
) -> dict[str, float]:
    """Blend user- and item-based scores for *user_id*'s unrated resources."""
    if frame.empty or user_id not in set(frame["reviewer_id"]):
        return {}

    matrix = rating_matrix(frame)
    combined: dict[str, float] = {}
    for rid, score in user_based_scores(matrix, user_id, threshold).items():
        combined[rid] = combined.get(rid, 0.0) + score * user_weight
    for rid, score in item_based_scores(matrix, user_id, threshold).items():
        combined[rid] = combined.get(rid, 0.0) + score * item_weight
    return combined
