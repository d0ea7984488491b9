"""
ペナルティ閾値の調整スクリプト
既知の配合から作った目標色に対して、ソルバーの1位の配合が
どれだけ目標に近いかでヒューリスティックの強さを評価する

ヒューリスティックは21色パレットで経験的に決めた値なので、
パレットを入れ替えたときはこのスクリプトで再確認する
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from blend import ReferenceColourant, simulate_blend
from penalties import DEFAULT_PENALTIES, PenaltyConfig
from solver import BlendSolver, SolverConstraints

logger = logging.getLogger(__name__)

TUNING_CONSTRAINTS = SolverConstraints(max_components=2, step_pct=0.02, min_pct=0.10,
                                       max_results=3)


def case_target(case: Dict, palette: Sequence[ReferenceColourant]):
    """テストケースの配合を混色して目標Labを作る"""
    lab, _ = simulate_blend(palette, case['weights'])
    return lab


def evaluate_config(test_cases: List[Dict],
                    palette: Sequence[ReferenceColourant],
                    config: PenaltyConfig,
                    constraints: SolverConstraints = TUNING_CONSTRAINTS) -> Tuple[float, float]:
    """
    1つの閾値設定を評価

    Returns:
        (1位の配合の平均ΔE00, 1位が期待した色の組み合わせだった割合)
    """
    codes = {c.code for c in palette}
    solver = BlendSolver(palette, constraints, config)

    total_error = 0.0
    total_weight = 0.0
    hits = 0
    evaluated = 0
    for tc in test_cases:
        if not set(tc['weights']) <= codes:
            logger.warning("skipping %s: colour not in palette", tc['name'])
            continue
        recipes = solver.solve(case_target(tc, palette))
        if not recipes:
            continue
        top = recipes[0]
        total_error += top.delta_e * tc['weight']
        total_weight += tc['weight']
        hits += set(top.weights) == set(tc['weights'])
        evaluated += 1

    if total_weight == 0:
        return float('inf'), 0.0
    return total_error / total_weight, hits / evaluated


def find_best_penalty(test_cases: List[Dict],
                      palette: Sequence[ReferenceColourant],
                      penalties: Optional[Sequence[float]] = None,
                      base_config: PenaltyConfig = DEFAULT_PENALTIES) -> Tuple[float, float]:
    """
    対立ペナルティの強さを探索

    Args:
        test_cases: テストケースのリスト
        palette: 基準色
        penalties: 試すペナルティ値 (省略時は0〜4を0.5刻み)

    Returns:
        (最適ペナルティ, 平均誤差)
    """
    if penalties is None:
        penalties = np.linspace(0.0, 4.0, 9)

    best_penalty = None
    best_error = float('inf')
    for penalty in penalties:
        config = replace(base_config, opposition_penalty=float(penalty))
        error, _ = evaluate_config(test_cases, palette, config)
        if error < best_error:
            best_error = error
            best_penalty = float(penalty)

    return best_penalty, best_error


# 既知の配合 (palette_database.csvのコード)
TEST_CASES = [
    {
        'name': 'Red 50% + Beige 50%',
        'weights': {'RH01': 0.5, 'RH30': 0.5},
        'weight': 1.0
    },
    {
        'name': 'Green 70% + Black 30%',
        'weights': {'RH10': 0.7, 'RH70': 0.3},
        'weight': 1.0
    },
    {
        'name': 'Blue 80% + Light Grey 20%',
        'weights': {'RH20': 0.8, 'RH61': 0.2},
        'weight': 1.0
    },
    {
        'name': 'Yellow 60% + Orange 40%',
        'weights': {'RH41': 0.6, 'RH03': 0.4},
        'weight': 1.0
    },
    {
        'name': 'Red 50% + Green 50%',
        'weights': {'RH01': 0.5, 'RH10': 0.5},
        'weight': 0.5
    },
    {
        'name': 'Beige 90% + Brown 10%',
        'weights': {'RH30': 0.9, 'RH50': 0.1},
        'weight': 1.0
    },
]


if __name__ == "__main__":
    from utils import load_palette

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    palette = load_palette()

    print("=" * 70)
    print("対立ペナルティの調整")
    print("=" * 70)
    print(f"\n{'ペナルティ':<10} {'平均ΔE':<12} {'組み合わせ一致率'}")
    print("-" * 70)

    for penalty in np.linspace(0.0, 4.0, 9):
        config = replace(DEFAULT_PENALTIES, opposition_penalty=float(penalty))
        error, hit_rate = evaluate_config(TEST_CASES, palette, config)
        marker = " ← 現在値" if abs(penalty - DEFAULT_PENALTIES.opposition_penalty) < 1e-9 else ""
        print(f"{penalty:<10.2f} {error:<12.3f} {hit_rate * 100:.0f}%{marker}")

    best_penalty, best_error = find_best_penalty(TEST_CASES, palette)
    print("-" * 70)
    print(f"\n✅ 最適ペナルティ: {best_penalty:.2f} (平均ΔE = {best_error:.3f})")
    print(f"📌 現在のopposition_penalty: {DEFAULT_PENALTIES.opposition_penalty}")
