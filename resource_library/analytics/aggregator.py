from __future__ import annotations

from collections import Counter
from typing import Any

RECOMMENDATION_KINDS = ("global", "personalized", "collaborative")


def compute_analytics(events: list[dict[str, Any]]) -> dict[str, Any]:
    created = sum(1 for e in events if e["type"] == "review_created")
    updated = sum(1 for e in events if e["type"] == "review_updated")
    removed = sum(1 for e in events if e["type"] == "review_removed")

    requests = [e for e in events if e["type"] == "recommendation"]
    total = len(requests)

    # Average response time
    times = [r["response_time_ms"] for r in requests if "response_time_ms" in r]
    avg_time = round(sum(times) / len(times), 1) if times else 0.0

    by_kind = {kind: 0 for kind in RECOMMENDATION_KINDS}
    for r in requests:
        by_kind[r.get("kind", "global")] = by_kind.get(r.get("kind", "global"), 0) + 1

    # Personalized requests answered with the global list
    personalized = [r for r in requests if r.get("kind") == "personalized"]
    fallbacks = sum(1 for r in personalized if r.get("fallback"))

    subject_counter: Counter[str] = Counter()
    grade_counter: Counter[int] = Counter()
    for r in requests:
        if r.get("subject"):
            subject_counter[r["subject"]] += 1
        if r.get("grade") is not None:
            grade_counter[r["grade"]] += 1

    empty_results = sum(1 for r in requests if r.get("results_returned", 0) == 0)

    return {
        "reviews": {
            "created": created,
            "updated": updated,
            "removed": removed,
        },
        "total_recommendation_requests": total,
        "requests_by_kind": by_kind,
        "avg_response_time_ms": avg_time,
        "personalized_fallback_rate": (
            round(fallbacks / len(personalized) * 100, 1) if personalized else 0.0
        ),
        "empty_result_rate": round(empty_results / total * 100, 1) if total else 0.0,
        "top_subjects": [{"name": n, "count": c} for n, c in subject_counter.most_common(10)],
        "top_grades": [{"grade": g, "count": c} for g, c in grade_counter.most_common(10)],
    }
