"""
TPVMixer - 配合候補の探索

1色 / 2色 / 3色の候補を列挙して目標色とのΔE00で評価する。

- 2色: 全ペア × 比率グリッドの混色結果(Lab)を事前計算してキャッシュ。
  目標に依存しないので、ソルバー1つにつき1回だけ作れば全目標で使い回せる
- 3色: 2色の上位30件を種にして3色目を加え、粗いグリッドで探索
- 局所改善: 1ステップずつ成分間で比率を移して改善すれば採用
"""

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from blend import ReferenceColourant, mix_lab
from convert import Lab
from delta_e import delta_e_2000, delta_e_2000_many
from penalties import HeuristicScorer

logger = logging.getLogger(__name__)

WEIGHT_EPSILON = 1e-6
SINGLE_TOP_K = 2
TWO_WAY_TOP_K = 10
THREE_WAY_TOP_K = 5
FORCED_TOP_K = 10


@dataclass
class BlendCandidate:
    """探索中の配合候補 (コード→重み、合計1)"""

    weights: Dict[str, float]
    lab: Lab
    base_delta_e: float
    adjusted_delta_e: float
    note: str = ""
    reasoning: str = ""
    parts: Optional[Dict[str, int]] = field(default=None, repr=False)
    parts_total: Optional[int] = None

    @property
    def n_components(self) -> int:
        return sum(1 for w in self.weights.values() if w > 0)

    @property
    def delta_e(self) -> float:
        return self.base_delta_e


def candidate_sort_key(c) -> Tuple[float, int, int, float]:
    """adjusted ΔE → 成分数 → パーツ合計 → 生のΔE の順"""
    return (c.adjusted_delta_e, c.n_components, c.parts_total or 0, c.delta_e)


def weight_grid(lo: float, hi: float, step: float) -> List[float]:
    """lo〜hiをstep刻みで列挙 (インデックスから計算して誤差の蓄積を避ける)"""
    if step <= 0 or hi < lo - WEIGHT_EPSILON:
        return []
    n = int(np.floor((hi - lo) / step + WEIGHT_EPSILON))
    return [lo + k * step for k in range(n + 1)]


def _weights_key(weights: Dict[str, float]) -> Tuple:
    return tuple(sorted((code, round(w, 4)) for code, w in weights.items()))


class TwoWayBlendCache:
    """
    2色混合の事前計算キャッシュ

    全ての非順序ペア(i, j)について p ∈ [min_pct, 1 - min_pct] を
    step_pct刻みで混色し、結果のLabだけを保持する。
    生成後は読み取り専用なので、複数スレッドから共有してよい。
    """

    def __init__(self, colours: Sequence[ReferenceColourant], step_pct: float, min_pct: float):
        self.colours = list(colours)
        self.step_pct = step_pct
        self.min_pct = min_pct

        pair_i, pair_j, ratios, labs = [], [], [], []
        if len(self.colours) >= 2 and 2 * min_pct <= 1 + WEIGHT_EPSILON:
            grid = weight_grid(min_pct, 1 - min_pct, step_pct)
            for i, j in combinations(range(len(self.colours)), 2):
                c1, c2 = self.colours[i], self.colours[j]
                for p in grid:
                    pair_i.append(i)
                    pair_j.append(j)
                    ratios.append(p)
                    labs.append(mix_lab([(c1, p), (c2, 1 - p)]))

        self.i = np.array(pair_i, dtype=int)
        self.j = np.array(pair_j, dtype=int)
        self.p = np.array(ratios, dtype=float)
        self.labs = np.array(labs, dtype=float).reshape(-1, 3)
        for arr in (self.i, self.j, self.p, self.labs):
            arr.flags.writeable = False
        logger.debug("two-way cache: %d entries for %d colours", len(self), len(self.colours))

    def __len__(self) -> int:
        return len(self.p)

    def weights(self, idx: int) -> Dict[str, float]:
        p = float(self.p[idx])
        return {self.colours[self.i[idx]].code: p, self.colours[self.j[idx]].code: 1 - p}

    def components(self, idx: int) -> List[Tuple[ReferenceColourant, float]]:
        p = float(self.p[idx])
        return [(self.colours[self.i[idx]], p), (self.colours[self.j[idx]], 1 - p)]

    def base_delta_e(self, target: Lab) -> np.ndarray:
        """全エントリの目標とのΔE00"""
        if len(self) == 0:
            return np.zeros(0)
        return delta_e_2000_many(target, self.labs)

    def score(self, target: Lab, scorer: HeuristicScorer) -> List[Tuple[float, float, int]]:
        """
        全エントリを評価して (adjusted ΔE, base ΔE, index) を昇順で返す
        """
        base = self.base_delta_e(target)
        scored = []
        for idx in range(len(self)):
            b = float(base[idx])
            scored.append((scorer.adjust(b, self.components(idx)), b, idx))
        scored.sort()
        return scored


class CandidateSearch:
    """1つのパレット・制約に対する候補探索"""

    def __init__(self, colours: Sequence[ReferenceColourant], step_pct: float, min_pct: float,
                 refine_iterations: int = 10, three_way_seeds: int = 30):
        self.colours = list(colours)
        self.by_code = {c.code: c for c in self.colours}
        self.step_pct = step_pct
        self.min_pct = min_pct
        self.refine_iterations = refine_iterations
        self.three_way_seeds = three_way_seeds
        self.cache = TwoWayBlendCache(self.colours, step_pct, min_pct)

    # --- 共通 ---

    def evaluate(self, weights: Dict[str, float], target: Lab, scorer: HeuristicScorer,
                 note: str = "", reasoning: str = "") -> BlendCandidate:
        components = [(self.by_code[code], w) for code, w in weights.items() if w > 0]
        lab = mix_lab(components)
        base = delta_e_2000(target, lab)
        return BlendCandidate(
            weights=dict(weights),
            lab=lab,
            base_delta_e=base,
            adjusted_delta_e=scorer.adjust(base, components),
            note=note,
            reasoning=reasoning,
        )

    def feasible(self, n_components: int) -> bool:
        """min_pct * 成分数 > 1 なら、その成分数の候補は存在しない"""
        return n_components * self.min_pct <= 1 + WEIGHT_EPSILON

    def _two_way_reasoning(self, weights: Dict[str, float]) -> str:
        (code1, p1), (code2, p2) = sorted(weights.items(), key=lambda cw: cw[1], reverse=True)
        name1, name2 = self.by_code[code1].name, self.by_code[code2].name
        if p1 >= 0.6:
            return f"Anchor {name1} with {name2} adjustment"
        return f"Balanced mix of {name1} and {name2}"

    # --- 1色 ---

    def single(self, target: Lab, scorer: HeuristicScorer, top_k: int = SINGLE_TOP_K) -> List[BlendCandidate]:
        """単色一致。補正はかけない"""
        results = []
        for colour in self.colours:
            d = scorer.single_distances.get(colour.code)
            if d is None:
                d = delta_e_2000(target, colour.lab)
            results.append(BlendCandidate(
                weights={colour.code: 1.0},
                lab=colour.lab,
                base_delta_e=d,
                adjusted_delta_e=d,
                note="Single component",
                reasoning=f"Direct match with {colour.name}",
            ))
        results.sort(key=candidate_sort_key)
        return results[:top_k]

    # --- 2色 ---

    def two_way(self, target: Lab, scorer: HeuristicScorer,
                scored: Optional[List[Tuple[float, float, int]]] = None,
                top_k: int = TWO_WAY_TOP_K) -> List[BlendCandidate]:
        if scored is None:
            scored = self.cache.score(target, scorer)
        results = []
        for adjusted, base, idx in scored[:top_k]:
            weights = self.cache.weights(idx)
            results.append(BlendCandidate(
                weights=weights,
                lab=tuple(float(v) for v in self.cache.labs[idx]),
                base_delta_e=base,
                adjusted_delta_e=adjusted,
                note="2-component blend",
                reasoning=self._two_way_reasoning(weights),
            ))
        return results

    # --- 3色 ---

    def extend_with_third(self, target: Lab, scorer: HeuristicScorer,
                          seeds: Sequence[Dict[str, float]],
                          top_k: int = THREE_WAY_TOP_K) -> List[BlendCandidate]:
        """
        2色の種に3色目を加える

        3色目の比率p3を2×step_pct刻みで振り、種の2色は比率を保ったまま
        残り(1 - p3)に拡大縮小する。min_pct未満になる重みは棄却。
        """
        if not self.feasible(3):
            return []

        grid = weight_grid(self.min_pct, 1 - 2 * self.min_pct, 2 * self.step_pct)
        tested = set()
        results = []
        for seed in seeds:
            if len(seed) != 2:
                continue
            (code1, base1), (code2, base2) = seed.items()
            seed_total = base1 + base2
            for colour in self.colours:
                if colour.code in seed:
                    continue
                for p3 in grid:
                    scale = (1 - p3) / seed_total
                    p1 = base1 * scale
                    p2 = base2 * scale
                    if p1 < self.min_pct - WEIGHT_EPSILON or p2 < self.min_pct - WEIGHT_EPSILON:
                        continue
                    weights = {code1: p1, code2: p2, colour.code: p3}
                    key = _weights_key(weights)
                    if key in tested:
                        continue
                    tested.add(key)
                    results.append(self.evaluate(
                        weights, target, scorer,
                        note="3-component blend",
                        reasoning="Refined blend with three components",
                    ))

        results.sort(key=candidate_sort_key)
        return results[:top_k]

    def three_way(self, target: Lab, scorer: HeuristicScorer,
                  scored: Optional[List[Tuple[float, float, int]]] = None,
                  top_k: int = THREE_WAY_TOP_K) -> List[BlendCandidate]:
        """2色キャッシュの上位(三色の種)から3色候補を作る"""
        if len(self.colours) < 3 or not self.feasible(3):
            return []
        if scored is None:
            scored = self.cache.score(target, scorer)
        seeds = [self.cache.weights(idx) for _, _, idx in scored[:self.three_way_seeds]]
        return self.extend_with_third(target, scorer, seeds, top_k)

    # --- 局所改善 ---

    def local_refine(self, candidate: BlendCandidate, target: Lab,
                     scorer: HeuristicScorer) -> BlendCandidate:
        """
        ある成分からstep_pctだけ別の成分へ比率を移し、adjusted ΔEが
        厳密に下がれば採用。改善が無くなるかrefine_iterations回で終了
        """
        best = candidate
        codes = list(candidate.weights)
        if len(codes) < 2:
            return best

        for _ in range(self.refine_iterations):
            improved = False
            for src in codes:
                for dst in codes:
                    if src == dst:
                        continue
                    weights = dict(best.weights)
                    weights[src] -= self.step_pct
                    weights[dst] += self.step_pct
                    if weights[src] < self.min_pct - WEIGHT_EPSILON:
                        continue
                    trial = self.evaluate(weights, target, scorer, best.note, best.reasoning)
                    if trial.adjusted_delta_e < best.adjusted_delta_e:
                        best = trial
                        improved = True
            if not improved:
                break
        return best

    # --- 必須成分 ---

    def forced(self, target: Lab, scorer: HeuristicScorer, forced_codes: Sequence[str],
               max_components: int, top_k: int = FORCED_TOP_K) -> List[BlendCandidate]:
        """
        指定コードを必ず含む候補だけを探索

        必須が1色なら他の全色とのペア、2色ならそのペアを掃引し、
        3色まで許されていれば上位ペアを種に3色目を加える。
        """
        forced = []
        for code in forced_codes:
            if code not in self.by_code:
                logger.warning("forced component %s is not in the palette; ignored", code)
            elif code not in forced:
                forced.append(code)
        if not forced:
            return []
        if len(forced) > max_components:
            logger.info("%d forced components exceed max_components=%d; skipped",
                        len(forced), max_components)
            return []

        results = []
        if len(forced) == 1:
            colour = self.by_code[forced[0]]
            d = scorer.single_distances.get(colour.code)
            if d is None:
                d = delta_e_2000(target, colour.lab)
            results.append(BlendCandidate(
                weights={colour.code: 1.0}, lab=colour.lab, base_delta_e=d,
                adjusted_delta_e=d, note="With required components",
                reasoning=f"Direct match with {colour.name}",
            ))

        pairs = []
        if len(forced) == 1:
            pairs = [(forced[0], c.code) for c in self.colours if c.code != forced[0]]
        elif len(forced) == 2:
            pairs = [tuple(forced)]

        two_way = []
        if max_components >= 2 and self.feasible(2):
            grid = weight_grid(self.min_pct, 1 - self.min_pct, self.step_pct)
            for code1, code2 in pairs:
                for p in grid:
                    weights = {code1: p, code2: 1 - p}
                    two_way.append(self.evaluate(
                        weights, target, scorer,
                        note="With required components",
                        reasoning=self._two_way_reasoning(weights),
                    ))
            two_way.sort(key=candidate_sort_key)
            results.extend(two_way[:top_k])

        if max_components >= 3 and self.feasible(3):
            if len(forced) == 3:
                three_way = self._sweep_triple(target, scorer, forced)
            else:
                seeds = [c.weights for c in two_way[:self.three_way_seeds]]
                three_way = self.extend_with_third(target, scorer, seeds, top_k)
            for c in three_way:
                c.note = "With required components"
            results.extend(self.local_refine(c, target, scorer) for c in three_way[:THREE_WAY_TOP_K])

        results.sort(key=candidate_sort_key)
        return results[:top_k]

    def _sweep_triple(self, target: Lab, scorer: HeuristicScorer,
                      codes: Sequence[str]) -> List[BlendCandidate]:
        step = 2 * self.step_pct
        grid = weight_grid(self.min_pct, 1 - 2 * self.min_pct, step)
        results = []
        for p1 in grid:
            for p2 in grid:
                p3 = 1 - p1 - p2
                if p3 < self.min_pct - WEIGHT_EPSILON:
                    continue
                results.append(self.evaluate(
                    {codes[0]: p1, codes[1]: p2, codes[2]: p3}, target, scorer,
                    note="With required components",
                    reasoning="Refined blend with three components",
                ))
        results.sort(key=candidate_sort_key)
        return results[:THREE_WAY_TOP_K]
