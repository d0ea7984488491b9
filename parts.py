"""
TPVMixer - 整数パーツ変換

連続比率の配合を「A 2 : B 1」のような小さな整数比に丸める。
丸めで生じた色差は混色をやり直して実際のΔE00として報告する。
"""

import logging
import math
from dataclasses import dataclass
from functools import reduce
from typing import Dict, Mapping, Optional, Sequence, Tuple

from blend import mix, mix_lab
from convert import Lab, RGB
from delta_e import delta_e_2000

logger = logging.getLogger(__name__)

DEFAULT_TOTALS = (9, 12, 15, 18)
HILL_CLIMB_ITERATIONS = 5


@dataclass(frozen=True)
class PartsResult:
    parts: Dict[str, int]
    weights: Dict[str, float]
    total: int
    delta_e: float
    lab: Lab
    rgb: RGB


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def gcd_list(values: Sequence[int]) -> int:
    """整数列の最大公約数 (空なら1)"""
    if not values:
        return 1
    return reduce(math.gcd, (int(v) for v in values))


def reduction_divisor(parts: Sequence[int], min_per: int = 1) -> int:
    """最大公約数の約数のうち、約分後も全成分がmin_per以上になる最大のもの"""
    g = gcd_list(parts)
    for d in range(g, 1, -1):
        if g % d == 0 and all(p // d >= min_per for p in parts):
            return d
    return 1


def _argmax(values: Sequence[float], allowed: Optional[Sequence[bool]] = None) -> int:
    best = -1
    for i, v in enumerate(values):
        if allowed is not None and not allowed[i]:
            continue
        if best < 0 or v > values[best]:
            best = i
    return best


def _parts_delta_e(codes, parts, colours, target_lab) -> float:
    lab = mix_lab((colours[code], p) for code, p in zip(codes, parts))
    return delta_e_2000(target_lab, lab)


def snap_to_parts(weights: Mapping[str, float],
                  colours: Mapping,
                  target_lab: Lab,
                  total: int,
                  min_per: int = 1,
                  max_attempts: int = 3) -> Optional[PartsResult]:
    """
    連続比率を合計totalの整数パーツに変換し、ΔE00の悪化を最小化する

    1. 初期丸め: max(min_per, round(w * total))
    2. 合計がtotalになるまで余剰最大 / 不足最大の成分を1パーツずつ調整
    3. 1パーツ移動の山登り法 (最大5回)
    4. 各成分がmin_per以上に残る最大の約数で約分し、重み・Lab・RGB・ΔEを再計算
       (最大公約数1になるのはmin_per == 1のときのみ。
       例: min_per=2なら 6:6 は 2:2 までしか約分しない)

    Args:
        weights: コード→比率
        colours: コード→基準色
        target_lab: 目標のLab値
        total: パーツ合計
        min_per: 1成分あたりの最小パーツ数

    Returns:
        PartsResult。制約を満たす割り当てが無ければNone
    """
    codes = [code for code, w in weights.items() if w > 0 and code in colours]
    if not codes or total <= 0 or min_per * len(codes) > total:
        return None

    ideal = [weights[code] * total for code in codes]
    parts = [max(min_per, round_half_up(x)) for x in ideal]

    # === 合計をtotalに合わせる ===
    attempts = 0
    current = sum(parts)
    while current != total and attempts < max_attempts * 10:
        if current < total:
            deficits = [ideal[i] - parts[i] for i in range(len(codes))]
            parts[_argmax(deficits)] += 1
        else:
            surpluses = [parts[i] - ideal[i] for i in range(len(codes))]
            idx = _argmax(surpluses, [p > min_per for p in parts])
            if idx < 0:
                return None
            parts[idx] -= 1
        current = sum(parts)
        attempts += 1

    if current != total:
        logger.debug("parts balancing did not converge for total=%d", total)
        return None

    # === 山登り法: 1パーツずつ移動してΔEが下がるなら採用 ===
    best_parts = list(parts)
    best_delta_e = _parts_delta_e(codes, parts, colours, target_lab)
    for _ in range(HILL_CLIMB_ITERATIONS):
        improved = False
        for i in range(len(codes)):
            if parts[i] <= min_per:
                continue
            for j in range(len(codes)):
                if i == j:
                    continue
                trial = list(parts)
                trial[i] -= 1
                trial[j] += 1
                trial_delta_e = _parts_delta_e(codes, trial, colours, target_lab)
                if trial_delta_e < best_delta_e:
                    best_parts = trial
                    best_delta_e = trial_delta_e
                    improved = True
        if not improved:
            break
        parts = list(best_parts)

    # === min_perを割らない範囲で約分して最終値を計算 ===
    g = reduction_divisor(best_parts, min_per)
    reduced = [p // g for p in best_parts]
    reduced_total = sum(reduced)
    parts_map = dict(zip(codes, reduced))
    weights_map = {code: p / reduced_total for code, p in parts_map.items()}
    lab, rgb = mix((colours[code], w) for code, w in weights_map.items())

    return PartsResult(
        parts=parts_map,
        weights=weights_map,
        total=reduced_total,
        delta_e=delta_e_2000(target_lab, lab),
        lab=lab,
        rgb=rgb,
    )


def find_optimal_parts(weights: Mapping[str, float],
                       colours: Mapping,
                       target_lab: Lab,
                       totals: Sequence[int] = DEFAULT_TOTALS,
                       min_per: int = 1,
                       max_delta_e_penalty: float = 0.8,
                       max_total: Optional[int] = None) -> Optional[PartsResult]:
    """
    複数のパーツ合計を順に試し、簡単さと精度のバランスを取る

    ΔE00がmax_delta_e_penalty未満になった最初の合計を採用し、
    どれも満たさなければ最もΔEの小さい結果を返す。
    """
    best = None
    for total in totals:
        if max_total is not None and total > max_total:
            continue
        result = snap_to_parts(weights, colours, target_lab, total, min_per)
        if result is None:
            continue
        if result.delta_e < max_delta_e_penalty:
            return result
        if best is None or result.delta_e < best.delta_e:
            best = result
    return best


# === 旧来の簡易変換 (UI・エクスポート用) ===

def percentages_to_parts(percentages: Mapping[str, float],
                         max_total: int,
                         min_per: int = 1) -> Optional[Tuple[Dict[str, int], int]]:
    """
    比率を整数パーツに変換 (色差は考慮しない)

    合計を小さい方から順に試し、各成分の誤差が0.5/合計以内に収まる
    最初の合計を採用する。該当が無ければ誤差最小の合計を使う。

    Returns:
        (パーツ, 約分後の合計)。比率の合計が1でない・制約を満たせない場合はNone
    """
    codes = [code for code, w in percentages.items() if w > 0]
    if not codes:
        return None
    if abs(sum(percentages[code] for code in codes) - 1.0) > 0.001:
        return None

    fallback = None
    fallback_error = math.inf
    for total in range(len(codes) * min_per, max_total + 1):
        parts = {}
        remaining = total
        valid = True
        for i, code in enumerate(codes):
            if i == len(codes) - 1:
                parts[code] = remaining
                if remaining < min_per:
                    valid = False
            else:
                parts[code] = max(min_per, round_half_up(percentages[code] * total))
                remaining -= parts[code]
                if remaining < min_per * (len(codes) - i - 1):
                    valid = False
                    break
        if not valid:
            continue

        error = max(abs(parts[code] / total - percentages[code]) for code in codes)
        if error <= 0.5 / total + 1e-9:
            return _reduce_parts(parts, min_per)
        if error < fallback_error:
            fallback, fallback_error = parts, error

    if fallback is None:
        return None
    return _reduce_parts(fallback, min_per)


def _reduce_parts(parts: Dict[str, int], min_per: int = 1) -> Tuple[Dict[str, int], int]:
    g = reduction_divisor(list(parts.values()), min_per)
    reduced = {code: p // g for code, p in parts.items()}
    return reduced, sum(reduced.values())


def parts_to_percentages(parts: Mapping[str, int]) -> Dict[str, float]:
    total = sum(parts.values())
    if total == 0:
        return {}
    return {code: p / total for code, p in parts.items()}


def snap_to_ratio_grid(value: float, step: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """値をstep刻みのグリッドに丸める"""
    snapped = lo + round_half_up((value - lo) / step) * step
    return max(lo, min(hi, snapped))


def format_parts(parts: Mapping[str, int]) -> str:
    """'2 parts RH01, 1 part RH10' 形式"""
    entries = sorted(((c, v) for c, v in parts.items() if v > 0),
                     key=lambda cv: cv[1], reverse=True)
    if not entries:
        return ""
    if len(entries) == 1:
        return f"{entries[0][0]} (100%)"
    return ", ".join(f"{v} {'part' if v == 1 else 'parts'} {c}" for c, v in entries)


def format_percentages(percentages: Mapping[str, float]) -> str:
    """'66.7% RH01, 33.3% RH10' 形式 (0.1%以下は省略)"""
    entries = sorted(((c, v) for c, v in percentages.items() if v > 0.001),
                     key=lambda cv: cv[1], reverse=True)
    return ", ".join(f"{v * 100:.1f}% {c}" for c, v in entries)
