"""
TPVMixer - 配合ソルバー

目標色(Lab)に対して、基準色パレットから1〜3色の配合を提案する。

    solver = BlendSolver(palette, SolverConstraints(max_components=3))
    recipes = solver.solve((52.0, 31.5, 12.0))

パレットと制約はソルバーごとに固定。2色混合キャッシュは生成時に1回だけ作り、
以降のsolve()では読み取りのみ(複数スレッドから同じソルバーを使ってよい)。
"""

import logging
from dataclasses import asdict, dataclass, field, replace
from typing import ClassVar, Dict, List, Optional, Sequence, Tuple, Union

from blend import ReferenceColourant, mix
from convert import Lab, RGB, rgb_to_hex
from dedupe import deduplicate, mmr_select, rank_key
from parts import DEFAULT_TOTALS, find_optimal_parts
from penalties import DEFAULT_PENALTIES, HeuristicScorer, PenaltyConfig
from search import BlendCandidate, CandidateSearch

logger = logging.getLogger(__name__)

MODES = ("percent", "parts")


@dataclass(frozen=True)
class PartsOptions:
    """
    整数パーツ変換の設定

    total: 固定のパーツ合計 (指定時はtotalsより優先)
    totals: 順に試すパーツ合計
    min_per: 1成分あたりの最小パーツ数
    max_total: パーツ合計の上限
    max_delta_e_penalty: この値未満のΔE00になった合計を即採用
    """

    total: Optional[int] = None
    totals: Tuple[int, ...] = DEFAULT_TOTALS
    min_per: int = 1
    max_total: Optional[int] = None
    max_delta_e_penalty: float = 0.8

    def __post_init__(self):
        if self.min_per < 1:
            raise ValueError("min_per must be at least 1")
        object.__setattr__(self, "totals", tuple(int(t) for t in self.totals))

    def candidate_totals(self) -> Tuple[int, ...]:
        totals = (self.total,) if self.total else self.totals
        if self.max_total is not None:
            totals = tuple(t for t in totals if t <= self.max_total)
        return totals


@dataclass(frozen=True)
class SolverConstraints:
    max_components: int = 3
    step_pct: float = 0.02
    min_pct: float = 0.10
    mode: str = "percent"
    force_components: Tuple[str, ...] = ()
    parts: PartsOptions = field(default_factory=PartsOptions)
    max_results: int = 5
    diversify: bool = False
    mmr_lambda: float = 0.75
    refine_iterations: int = 10
    three_way_seeds: int = 30

    def __post_init__(self):
        if self.max_components not in (1, 2, 3):
            raise ValueError(f"max_components must be 1, 2 or 3 (got {self.max_components})")
        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {MODES} (got {self.mode!r})")
        if self.step_pct <= 0:
            raise ValueError("step_pct must be positive")
        if not 0 <= self.min_pct < 1:
            raise ValueError("min_pct must be in [0, 1)")
        if self.max_results < 1:
            raise ValueError("max_results must be at least 1")
        if not 0 <= self.mmr_lambda <= 1:
            raise ValueError("mmr_lambda must be in [0, 1]")
        object.__setattr__(self, "force_components", tuple(self.force_components or ()))


@dataclass(frozen=True)
class PercentRecipe:
    """比率で表した配合"""

    kind: ClassVar[str] = "percent"

    weights: Dict[str, float]
    lab: Lab
    rgb: RGB
    delta_e: float
    adjusted_delta_e: float
    note: str = ""
    reasoning: str = ""

    @property
    def parts(self) -> None:
        return None

    @property
    def parts_total(self) -> None:
        return None

    @property
    def n_components(self) -> int:
        return len(self.weights)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["kind"] = self.kind
        data["hex"] = rgb_to_hex(self.rgb)
        return data


@dataclass(frozen=True)
class PartsRecipe:
    """
    整数パーツで表した配合

    partsは約分済み(最大公約数1)、weights = parts / total。
    delta_eは丸め後に混色し直した実際の色差、base_delta_eは丸め前の値。
    """

    kind: ClassVar[str] = "parts"

    parts: Dict[str, int]
    total: int
    weights: Dict[str, float]
    lab: Lab
    rgb: RGB
    delta_e: float
    adjusted_delta_e: float
    base_delta_e: float
    note: str = ""
    reasoning: str = ""

    @property
    def parts_total(self) -> int:
        return self.total

    @property
    def n_components(self) -> int:
        return len(self.parts)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["kind"] = self.kind
        data["hex"] = rgb_to_hex(self.rgb)
        return data


Recipe = Union[PercentRecipe, PartsRecipe]


class BlendSolver:
    """
    パレット1つ・制約1つに対する配合ソルバー

    Args:
        palette: 基準色のリスト (コードは一意)
        constraints: 探索制約
        penalty_config: ヒューリスティックの閾値
    """

    def __init__(self, palette: Sequence[ReferenceColourant],
                 constraints: Optional[SolverConstraints] = None,
                 penalty_config: PenaltyConfig = DEFAULT_PENALTIES):
        self.constraints = constraints or SolverConstraints()
        self.penalty_config = penalty_config
        self.colours = list(palette)
        self.by_code = {c.code: c for c in self.colours}
        if len(self.by_code) != len(self.colours):
            raise ValueError("palette colour codes must be unique")
        self.search = CandidateSearch(
            self.colours,
            step_pct=self.constraints.step_pct,
            min_pct=self.constraints.min_pct,
            refine_iterations=self.constraints.refine_iterations,
            three_way_seeds=self.constraints.three_way_seeds,
        )

    def solve(self, target_lab: Lab) -> List[Recipe]:
        """目標色に最も近い配合を最大max_results件、良い順に返す"""
        target = tuple(float(v) for v in target_lab)
        if not self.colours:
            logger.info("empty palette; nothing to solve")
            return []

        scorer = HeuristicScorer(target, self.colours, self.penalty_config)
        pool = self._candidates(target, scorer)
        pool = deduplicate(pool)
        logger.debug("%d candidates after deduplication", len(pool))

        c = self.constraints
        if c.mode == "parts":
            recipes = [self._to_parts(cand, target, scorer)
                       for cand in pool[:c.max_results * 3]]
        else:
            recipes = [self._to_percent(cand) for cand in pool]
        recipes = deduplicate(recipes)

        if c.diversify:
            recipes = mmr_select(recipes, c.max_results, c.mmr_lambda)
        return recipes[:c.max_results]

    def _candidates(self, target: Lab, scorer: HeuristicScorer) -> List[BlendCandidate]:
        c = self.constraints
        search = self.search

        forced = [code for code in c.force_components if code in self.by_code]
        if c.force_components and not forced:
            logger.warning("none of the forced components %s are in the palette",
                           ", ".join(c.force_components))
        if forced:
            return search.forced(target, scorer, c.force_components, c.max_components)

        pool = search.single(target, scorer)

        scored = None
        if c.max_components >= 2:
            if search.feasible(2) and len(search.cache):
                scored = search.cache.score(target, scorer)
                pool.extend(search.two_way(target, scorer, scored))
            else:
                logger.info("two-way search skipped (min_pct=%.3f, %d colours)",
                            c.min_pct, len(self.colours))

        if c.max_components >= 3:
            if scored is not None and search.feasible(3) and len(self.colours) >= 3:
                three_way = search.three_way(target, scorer, scored)
                if c.refine_iterations > 0:
                    three_way = [search.local_refine(cand, target, scorer) for cand in three_way]
                pool.extend(three_way)
            else:
                logger.info("three-way search skipped (min_pct=%.3f, %d colours)",
                            c.min_pct, len(self.colours))

        pool.sort(key=rank_key)
        return pool

    def _to_percent(self, cand: BlendCandidate) -> PercentRecipe:
        weights = {code: w for code, w in cand.weights.items() if w > 0}
        lab, rgb = mix((self.by_code[code], w) for code, w in weights.items())
        return PercentRecipe(
            weights=weights,
            lab=lab,
            rgb=rgb,
            delta_e=cand.base_delta_e,
            adjusted_delta_e=cand.adjusted_delta_e,
            note=cand.note,
            reasoning=cand.reasoning,
        )

    def _to_parts(self, cand: BlendCandidate, target: Lab,
                  scorer: HeuristicScorer) -> Recipe:
        """パーツに変換。失敗した場合は比率の配合のまま返す"""
        opts = self.constraints.parts
        result = find_optimal_parts(
            cand.weights,
            self.by_code,
            target,
            totals=opts.candidate_totals(),
            min_per=opts.min_per,
            max_delta_e_penalty=opts.max_delta_e_penalty,
            max_total=opts.max_total,
        )
        if result is None:
            logger.warning("could not snap %s to parts; keeping percentages",
                           ", ".join(sorted(cand.weights)))
            recipe = self._to_percent(cand)
            return replace(recipe, note=f"{cand.note} (parts unavailable)")

        components = [(self.by_code[code], w) for code, w in result.weights.items()]
        penalty = result.delta_e - cand.base_delta_e
        return PartsRecipe(
            parts=result.parts,
            total=result.total,
            weights=result.weights,
            lab=result.lab,
            rgb=result.rgb,
            delta_e=result.delta_e,
            adjusted_delta_e=scorer.adjust(result.delta_e, components),
            base_delta_e=cand.base_delta_e,
            note=f"{cand.note} ({result.total} parts total)",
            reasoning=f"{cand.reasoning} - Snapped to {result.total} parts "
                      f"with ΔE {penalty:.2f} penalty",
        )


def solve(target_lab: Lab, constraints: SolverConstraints,
          palette: Sequence[ReferenceColourant]) -> List[Recipe]:
    """BlendSolverを作って1回だけ解く"""
    return BlendSolver(palette, constraints).solve(target_lab)
