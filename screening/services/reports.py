from typing import Dict, List

import pandas as pd

from screening.models.models import EvaluationResult, Rubric

BASE_COLUMNS = ["rank", "profile_id", "profile_name", "total_score", "average_score"]


def ranking_frame(rubric: Rubric, results: List[EvaluationResult]) -> pd.DataFrame:
    """One row per profile, best average first, plus a column per rubric item."""
    item_ids = [item.id for item in rubric.items]
    rows = []
    for r in results:
        by_item: Dict[str, int] = {s.item_id: s.score for s in r.scores}
        rows.append({
            "profile_id": r.profile_id,
            "profile_name": r.profile_name or "",
            "total_score": r.total_score,
            "average_score": round(r.average_score, 4),
            **{item_id: by_item.get(item_id) for item_id in item_ids},
        })

    df = pd.DataFrame(rows, columns=BASE_COLUMNS[1:] + item_ids)
    if len(df):
        df = df.sort_values("average_score", ascending=False, kind="stable").reset_index(drop=True)
    df.insert(0, "rank", range(1, len(df) + 1))
    return df


def to_csv(rubric: Rubric, results: List[EvaluationResult]) -> str:
    return ranking_frame(rubric, results).to_csv(index=False)


def to_markdown(rubric: Rubric, results: List[EvaluationResult], top: int = 10) -> str:
    df = ranking_frame(rubric, results)
    item_ids = [item.id for item in rubric.items]

    md_lines = [f"# {rubric.title} Ranking"]
    md_lines.append(f"*{len(df)} profile(s) evaluated against {len(item_ids)} rubric item(s)*\n")

    if not len(df):
        md_lines.append("> No evaluation results for this rubric.\n")
        return "\n".join(md_lines)

    md_lines += [
        "| Rank | Profile | Total | Average | " + " | ".join(item_ids) + " |",
        "|---:|---|---:|---:|" + "---:|" * len(item_ids),
    ]
    for rec in df.head(top).to_dict("records"):
        item_cells = " | ".join("" if pd.isna(rec[i]) else str(int(rec[i])) for i in item_ids)
        md_lines.append(
            f"| {rec['rank']} | {rec['profile_name'] or rec['profile_id']} | {rec['total_score']} | "
            f"{rec['average_score']:.2f} | {item_cells} |"
        )
    return "\n".join(md_lines)
