from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .models import AnalysisRecord, ProbabilityRecord

def _current_probability(rec: AnalysisRecord) -> Optional[ProbabilityRecord]:
    """Probability record at the record's own current streak, if one was observed."""
    pr = rec.probability_at_current_streak()
    if pr is None or pr.occurrences == 0:
        return None
    return pr

def find_opportunities(
    records: Iterable[AnalysisRecord],
    min_streak: int = 2,
    min_probability: float = 60.0,
) -> List[AnalysisRecord]:
    """Records on a red streak of at least `min_streak` days whose historical
    bounce probability at that exact streak length is >= `min_probability`.

    Sorted by that probability, highest first; ties keep input order.
    """
    picked = []
    for rec in records:
        if rec.current_streak < int(min_streak):
            continue
        pr = _current_probability(rec)
        if pr is None or pr.probability < float(min_probability):
            continue
        picked.append((pr.probability, rec))
    picked.sort(key=lambda x: x[0], reverse=True)
    return [rec for _p, rec in picked]

def scan_metrics(rec: AnalysisRecord) -> Dict[str, Any]:
    """Per-symbol figures the market scan ranks and filters on."""
    pr = _current_probability(rec)
    ms = rec.move_statistics
    neg = abs(ms.negative_average) if ms.negative_average else 1.0
    return {
        "currentStreakProb": pr.probability if pr is not None else 0.0,
        "avgReturn": ms.average,
        "posAvgReturn": ms.positive_average,
        "riskRewardRatio": ms.positive_average / neg,
    }
