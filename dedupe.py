"""
TPVMixer - 配合の重複除去と多様化

1. 組成レベル: 正規化した組成キーが同じ配合は1つにまとめる
2. 知覚バケット: Labを約ΔE 0.8〜1.0のセルに量子化し、見分けのつかない
   結果(式が違っても)は代表1件だけ残す
3. (任意) MMR: 目標への近さとLab空間での離れ具合のバランスで上位K件を選ぶ

対象は weights / parts / parts_total / n_components / delta_e /
adjusted_delta_e / lab を持つオブジェクト (BlendCandidate, Recipe)。
"""

import math
from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np
from scipy.spatial.distance import cdist

from parts import gcd_list, round_half_up

PERCENT_GRID = 2400
BUCKET_L_STEP = 0.75
BUCKET_AB_STEP = 1.0
MMR_LAMBDA = 0.75
# この距離(ΔE76)以上離れていれば冗長性0とみなす
MMR_DISTANCE_SCALE = 10.0


def _format_key(items: Mapping[str, int]) -> str:
    return "|".join(f"{code}:{n}" for code, n in sorted(items.items()))


def canonical_parts_key(parts: Mapping[str, int]) -> str:
    """パーツを約分してコード順に並べたキー"""
    items = {code: int(p) for code, p in parts.items() if p > 0}
    g = gcd_list(list(items.values()))
    return _format_key({code: p // g for code, p in items.items()})


def canonical_percent_key(weights: Mapping[str, float]) -> str:
    """比率を1/2400グリッドに量子化・約分してコード順に並べたキー"""
    total = sum(w for w in weights.values() if w > 0)
    if total <= 0:
        return ""
    items = {}
    for code, w in weights.items():
        n = round_half_up(w / total * PERCENT_GRID)
        if n > 0:
            items[code] = n
    g = gcd_list(list(items.values()))
    return _format_key({code: n // g for code, n in items.items()})


def composition_key(recipe) -> str:
    parts = getattr(recipe, "parts", None)
    if parts:
        return canonical_parts_key(parts)
    return canonical_percent_key(recipe.weights)


def rank_key(recipe) -> Tuple[float, int, int, float]:
    """最終ランキングの並び順 (adjusted ΔE → 成分数 → パーツ合計 → ΔE)"""
    return (recipe.adjusted_delta_e, recipe.n_components,
            recipe.parts_total or 0, recipe.delta_e)


def pareto_key(recipe) -> Tuple[int, int, float, float]:
    """同一組成内の優劣 (成分数 → パーツ合計 → ΔE)"""
    return (recipe.n_components, recipe.parts_total or 0,
            recipe.delta_e, recipe.adjusted_delta_e)


def better(a, b) -> bool:
    """aがbより良ければTrue"""
    return pareto_key(a) < pareto_key(b)


def dedupe_by_composition(recipes: Sequence) -> List:
    best: Dict[str, object] = {}
    for recipe in recipes:
        key = composition_key(recipe)
        if key not in best or better(recipe, best[key]):
            best[key] = recipe
    return sorted(best.values(), key=rank_key)


def lab_bucket_key(lab) -> Tuple[int, int, int]:
    L, a, b = lab
    return (math.floor(L / BUCKET_L_STEP),
            math.floor(a / BUCKET_AB_STEP),
            math.floor(b / BUCKET_AB_STEP))


def dedupe_by_bucket(recipes: Sequence) -> List:
    """同じLabバケットに入る配合はランキング上位の1件だけ残す"""
    seen = set()
    kept = []
    for recipe in sorted(recipes, key=rank_key):
        key = lab_bucket_key(recipe.lab)
        if key in seen:
            continue
        seen.add(key)
        kept.append(recipe)
    return kept


def deduplicate(recipes: Sequence) -> List:
    """組成 → 知覚バケットの2段階で重複除去 (結果に再適用しても変わらない)"""
    return dedupe_by_bucket(dedupe_by_composition(recipes))


def mmr_select(recipes: Sequence, k: int, lambda_: float = MMR_LAMBDA) -> List:
    """
    MMR (maximal marginal relevance) で上位k件を選ぶ

    score = λ·relevance − (1−λ)·redundancy
    relevance: adjusted ΔEを0〜1に正規化 (小さいほど1)
    redundancy: 選択済みの配合とのLab距離が近いほど1
    """
    ranked = sorted(recipes, key=rank_key)
    if k <= 0 or not ranked:
        return []
    if len(ranked) <= 1:
        return ranked[:k]

    scores = np.array([r.adjusted_delta_e for r in ranked], dtype=float)
    spread = scores.max() - scores.min()
    if spread > 0:
        relevance = 1 - (scores - scores.min()) / spread
    else:
        relevance = np.ones(len(ranked))

    labs = np.array([r.lab for r in ranked], dtype=float)
    distances = cdist(labs, labs)
    similarity = 1 - np.minimum(distances / MMR_DISTANCE_SCALE, 1.0)

    selected = [0]
    remaining = list(range(1, len(ranked)))
    while remaining and len(selected) < k:
        best_idx = None
        best_score = -np.inf
        for idx in remaining:
            redundancy = similarity[idx, selected].max()
            score = lambda_ * relevance[idx] - (1 - lambda_) * redundancy
            if score > best_score:
                best_idx, best_score = idx, score
        selected.append(best_idx)
        remaining.remove(best_idx)
    return [ranked[i] for i in selected]
