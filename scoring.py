import pandas as pd

# Each public vote adds this much to a group's round total
PUBLIC_VOTE_POINTS = 0.1


def weighted_judge_score(score_rows: list) -> float:
    """
    Combined judge score of one group in one round, on a 0-10 scale.

    score_rows: [{"judge_id", "score", "weight", "max_score"}, ...]

    Each score is normalized by its factor's max_score and weighted by the
    factor's weight. A judge's weighted average is scaled back to 10, and the
    group's score is the mean over judges. Missing or zero weights count as 1,
    missing or zero maxima as 10.
    """
    if not score_rows:
        return 0.0

    frame = pd.DataFrame(score_rows)
    weight = frame["weight"].fillna(1).replace(0, 1)
    max_score = frame["max_score"].fillna(10).replace(0, 10)

    frame["weighted"] = frame["score"] / max_score * weight
    frame["weight"] = weight

    per_judge = frame.groupby("judge_id")[["weighted", "weight"]].sum()
    per_judge = per_judge[per_judge["weight"] > 0]
    if per_judge.empty:
        return 0.0

    return float((per_judge["weighted"] / per_judge["weight"] * 10).mean())


def round_total(judge_score: float, public_votes: int) -> float:
    return judge_score + public_votes * PUBLIC_VOTE_POINTS


def rank_results(results: list, elimination_count: int = 0) -> list:
    """
    Sort round results by total_score (highest first), assign 1-based ranks,
    and disqualify the bottom elimination_count groups.

    results: [{"group_id", "judge_score", "public_votes", "total_score"}, ...]
    """
    ranked = sorted(results, key=lambda r: (-r["total_score"], r["group_id"]))
    threshold = len(ranked) - elimination_count if elimination_count and elimination_count > 0 else len(ranked)

    for index, result in enumerate(ranked):
        result["rank"] = index + 1
        result["is_qualified"] = index < threshold

    return ranked


def aggregate_scores(result_rows: list) -> list:
    """
    Totals across every round for each group, ordered by total_score with a
    final_rank. Qualification comes from the group's latest round.

    result_rows: [{"group_id", "round_number", "judge_score", "public_votes",
                   "total_score", "is_qualified"}, ...]
    """
    if not result_rows:
        return []

    frame = pd.DataFrame(result_rows).sort_values(["group_id", "round_number"])
    grouped = frame.groupby("group_id")

    summary = pd.DataFrame({
        "total_judge_score": grouped["judge_score"].sum(),
        "total_public_votes": grouped["public_votes"].sum(),
        "total_score": grouped["total_score"].sum(),
        "is_qualified": grouped["is_qualified"].last(),
        "round_count": grouped.size(),
    }).reset_index()

    summary = summary.sort_values(["total_score", "group_id"], ascending=[False, True]).reset_index(drop=True)
    summary["final_rank"] = summary.index + 1

    return [
        {
            "group_id": int(row.group_id),
            "total_judge_score": float(row.total_judge_score),
            "total_public_votes": int(row.total_public_votes),
            "total_score": float(row.total_score),
            "is_qualified": bool(row.is_qualified),
            "round_count": int(row.round_count),
            "final_rank": int(row.final_rank),
        }
        for row in summary.itertuples(index=False)
    ]


def scoring_progress(group_count: int, factor_count: int, completed: int) -> dict:
    """How far one judge is through scoring a round."""
    possible = group_count * factor_count
    return {
        "total_groups": group_count,
        "total_factors": factor_count,
        "total_possible_scores": possible,
        "completed_scores": completed,
        "progress_percentage": round(completed / possible * 100) if possible > 0 else 0,
    }
