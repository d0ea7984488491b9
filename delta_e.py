"""
TPVMixer - 色差計算
ΔE76 (ユークリッド距離) と ΔE00 (CIEDE2000)
"""

import math
from typing import Sequence, Tuple

import numpy as np

Lab = Tuple[float, float, float]

_POW25_7 = 25.0 ** 7


def delta_e_76(lab1: Lab, lab2: Lab) -> float:
    """ΔE*76 (CIE76)"""
    dL = lab2[0] - lab1[0]
    da = lab2[1] - lab1[1]
    db = lab2[2] - lab1[2]
    return math.sqrt(dL * dL + da * da + db * db)


def delta_e_2000(lab1: Lab, lab2: Lab) -> float:
    """
    ΔE00 (CIEDE2000) - kL = kC = kH = 1

    Sharma et al. (2005) の実装ノートに従う。
    C1'·C2' == 0 の場合は色相差を0として扱う(無彩色の色相は未定義のため)
    """
    L1, a1, b1 = lab1
    L2, a2, b2 = lab2

    C1 = math.hypot(a1, b1)
    C2 = math.hypot(a2, b2)
    C_bar7 = ((C1 + C2) / 2) ** 7
    G = 0.5 * (1 - math.sqrt(C_bar7 / (C_bar7 + _POW25_7)))

    a1p = (1 + G) * a1
    a2p = (1 + G) * a2
    C1p = math.hypot(a1p, b1)
    C2p = math.hypot(a2p, b2)

    h1p = math.degrees(math.atan2(b1, a1p)) % 360
    h2p = math.degrees(math.atan2(b2, a2p)) % 360

    dLp = L2 - L1
    dCp = C2p - C1p

    chroma_product = C1p * C2p
    if chroma_product == 0:
        dhp = 0.0
    else:
        dhp = h2p - h1p
        if dhp > 180:
            dhp -= 360
        elif dhp < -180:
            dhp += 360
    dHp = 2 * math.sqrt(chroma_product) * math.sin(math.radians(dhp) / 2)

    Lp_bar = (L1 + L2) / 2
    Cp_bar = (C1p + C2p) / 2

    if chroma_product == 0:
        hp_bar = h1p + h2p
    elif abs(h1p - h2p) <= 180:
        hp_bar = (h1p + h2p) / 2
    elif h1p + h2p < 360:
        hp_bar = (h1p + h2p + 360) / 2
    else:
        hp_bar = (h1p + h2p - 360) / 2

    T = (1
         - 0.17 * math.cos(math.radians(hp_bar - 30))
         + 0.24 * math.cos(math.radians(2 * hp_bar))
         + 0.32 * math.cos(math.radians(3 * hp_bar + 6))
         - 0.20 * math.cos(math.radians(4 * hp_bar - 63)))

    d_theta = 30 * math.exp(-((hp_bar - 275) / 25) ** 2)
    Cp_bar7 = Cp_bar ** 7
    R_C = 2 * math.sqrt(Cp_bar7 / (Cp_bar7 + _POW25_7))
    R_T = -math.sin(math.radians(2 * d_theta)) * R_C

    Lm50 = (Lp_bar - 50) ** 2
    S_L = 1 + 0.015 * Lm50 / math.sqrt(20 + Lm50)
    S_C = 1 + 0.045 * Cp_bar
    S_H = 1 + 0.015 * Cp_bar * T

    tL = dLp / S_L
    tC = dCp / S_C
    tH = dHp / S_H
    return math.sqrt(max(0.0, tL * tL + tC * tC + tH * tH + R_T * tC * tH))


def delta_e_2000_many(target: Lab, labs: Sequence[Lab]) -> np.ndarray:
    """
    1色 vs 多数色のΔE00をまとめて計算

    2色混合キャッシュの全エントリを目標色に対して評価するためのベクトル版。
    結果はdelta_e_2000(target, lab)と一致する。

    Args:
        target: 基準となるLab値
        labs: (N, 3)のLab配列

    Returns:
        (N,)のΔE00配列
    """
    labs = np.asarray(labs, dtype=float).reshape(-1, 3)
    L1, a1, b1 = (float(v) for v in target)
    L2, a2, b2 = labs[:, 0], labs[:, 1], labs[:, 2]

    C1 = math.hypot(a1, b1)
    C2 = np.hypot(a2, b2)
    C_bar7 = ((C1 + C2) / 2) ** 7
    G = 0.5 * (1 - np.sqrt(C_bar7 / (C_bar7 + _POW25_7)))

    a1p = (1 + G) * a1
    a2p = (1 + G) * a2
    C1p = np.hypot(a1p, b1)
    C2p = np.hypot(a2p, b2)

    h1p = np.degrees(np.arctan2(b1, a1p)) % 360
    h2p = np.degrees(np.arctan2(b2, a2p)) % 360

    dLp = L2 - L1
    dCp = C2p - C1p

    chroma_product = C1p * C2p
    zero_chroma = chroma_product == 0
    dhp = h2p - h1p
    dhp = np.where(dhp > 180, dhp - 360, np.where(dhp < -180, dhp + 360, dhp))
    dhp = np.where(zero_chroma, 0.0, dhp)
    dHp = 2 * np.sqrt(chroma_product) * np.sin(np.radians(dhp) / 2)

    Lp_bar = (L1 + L2) / 2
    Cp_bar = (C1p + C2p) / 2

    h_sum = h1p + h2p
    hp_bar = np.where(
        np.abs(h1p - h2p) <= 180,
        h_sum / 2,
        np.where(h_sum < 360, (h_sum + 360) / 2, (h_sum - 360) / 2),
    )
    hp_bar = np.where(zero_chroma, h_sum, hp_bar)

    T = (1
         - 0.17 * np.cos(np.radians(hp_bar - 30))
         + 0.24 * np.cos(np.radians(2 * hp_bar))
         + 0.32 * np.cos(np.radians(3 * hp_bar + 6))
         - 0.20 * np.cos(np.radians(4 * hp_bar - 63)))

    d_theta = 30 * np.exp(-((hp_bar - 275) / 25) ** 2)
    Cp_bar7 = Cp_bar ** 7
    R_C = 2 * np.sqrt(Cp_bar7 / (Cp_bar7 + _POW25_7))
    R_T = -np.sin(np.radians(2 * d_theta)) * R_C

    Lm50 = (Lp_bar - 50) ** 2
    S_L = 1 + 0.015 * Lm50 / np.sqrt(20 + Lm50)
    S_C = 1 + 0.045 * Cp_bar
    S_H = 1 + 0.015 * Cp_bar * T

    tL = dLp / S_L
    tC = dCp / S_C
    tH = dHp / S_H
    return np.sqrt(np.maximum(0.0, tL * tL + tC * tC + tH * tH + R_T * tC * tH))


def calculate_delta_e(target_lab: Lab, result_lab: Lab, method: str = "DE00") -> float:
    """色差を計算 (method: 'DE00' または 'DE76')"""
    if method == "DE76":
        return delta_e_76(target_lab, result_lab)
    if method == "DE00":
        return delta_e_2000(target_lab, result_lab)
    raise ValueError(f"unknown delta E method: {method}")
