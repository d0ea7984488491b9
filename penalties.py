"""
TPVMixer - 実用性ヒューリスティック

ΔEそのものは変えず、ランキング用の補正値(adjusted ΔE)だけを加減する。
物理的な補正ではなく「手で混ぜやすい配合」を上位に寄せるための経験則。

- 対立ペナルティ: 目標から遠い2色を綱引きさせる配合を嫌う
- スパース性ボーナス: 主色 + 少量の調整色 という配合を好む
- アンカーボーナス: 主色が目標に近い単色上位に入っていれば好む
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from convert import Lab
from delta_e import delta_e_2000


@dataclass(frozen=True)
class PenaltyConfig:
    """ヒューリスティックの閾値 (21色パレットで経験的に決めた値)"""

    separation: float = 45.0
    closeness: float = 12.0
    opposition_penalty: float = 2.0
    three_way_factor: float = 0.5

    dominant: float = 0.7
    dominant_bonus: float = -0.3
    adjuster: float = 0.25
    adjuster_bonus: float = -0.2

    anchor_top_n: int = 6
    anchor_min_weight: float = 0.6
    anchor_bonus: float = -0.5


DEFAULT_PENALTIES = PenaltyConfig()


def opposition_penalty(lab_a: Lab, lab_b: Lab, target: Lab,
                       config: PenaltyConfig = DEFAULT_PENALTIES) -> float:
    """2色が大きく離れていて、どちらも目標に近くなければペナルティ"""
    separation = delta_e_2000(lab_a, lab_b)
    if separation <= config.separation:
        return 0.0
    closest = min(delta_e_2000(lab_a, target), delta_e_2000(lab_b, target))
    if closest > config.closeness:
        return config.opposition_penalty
    return 0.0


def sparsity_bonus(weights: Sequence[float],
                   config: PenaltyConfig = DEFAULT_PENALTIES) -> float:
    """主色(>=70%)と小さな調整色(<=25%)にそれぞれボーナス(負の値)"""
    ordered = sorted(weights, reverse=True)
    if not ordered:
        return 0.0
    bonus = 0.0
    if ordered[0] >= config.dominant:
        bonus += config.dominant_bonus
    if len(ordered) > 1 and ordered[1] <= config.adjuster:
        bonus += config.adjuster_bonus
    return bonus


def anchor_bonus(main_distance: float, main_weight: float,
                 sorted_single_distances: Sequence[float],
                 config: PenaltyConfig = DEFAULT_PENALTIES) -> float:
    """
    主色が目標に近い単色の上位N件に入り、かつ十分な比率ならボーナス

    Args:
        main_distance: 主色と目標のΔE00
        main_weight: 主色の比率
        sorted_single_distances: 全単色の目標とのΔE00 (昇順)
    """
    if not sorted_single_distances or main_weight < config.anchor_min_weight:
        return 0.0
    n = min(config.anchor_top_n, len(sorted_single_distances))
    if main_distance <= sorted_single_distances[n - 1]:
        return config.anchor_bonus
    return 0.0


class HeuristicScorer:
    """
    1つの目標色に対するペナルティ計算

    単色のΔEは目標ごとに1回だけ計算してアンカー判定に使い回す。
    """

    def __init__(self, target: Lab, colours, config: PenaltyConfig = DEFAULT_PENALTIES):
        self.target = target
        self.config = config
        self.single_distances = {c.code: delta_e_2000(target, c.lab) for c in colours}
        self.sorted_distances = sorted(self.single_distances.values())
        self._pair_cache = {}

    def _pair_penalty(self, a, b) -> float:
        key = (a.code, b.code) if a.code < b.code else (b.code, a.code)
        if key not in self._pair_cache:
            self._pair_cache[key] = opposition_penalty(a.lab, b.lab, self.target, self.config)
        return self._pair_cache[key]

    def penalty(self, components: List[Tuple[object, float]]) -> float:
        """
        (基準色, 重み) のリストに対する補正値の合計

        単色は補正しない(単色一致の結果を変えないため)。
        """
        if len(components) < 2:
            return 0.0

        total = 0.0
        factor = self.config.three_way_factor if len(components) == 3 else 1.0
        for i in range(len(components)):
            for j in range(i + 1, len(components)):
                total += self._pair_penalty(components[i][0], components[j][0]) * factor

        total += sparsity_bonus([w for _, w in components], self.config)

        main, main_weight = max(components, key=lambda cw: cw[1])
        main_distance = self.single_distances.get(main.code)
        if main_distance is None:
            main_distance = delta_e_2000(main.lab, self.target)
        total += anchor_bonus(main_distance, main_weight, self.sorted_distances, self.config)
        return total

    def adjust(self, base_delta_e: float, components: List[Tuple[object, float]]) -> float:
        return base_delta_e + self.penalty(components)
