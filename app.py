"""
TPVMixer - TPVチップ調色ツール
デザインの指定色を、手持ちの基準色の配合で再現する
"""

import json
import logging

import numpy as np
import streamlit as st
from PIL import Image

from convert import hex_to_rgb, lab_to_srgb, rgb_to_hex, srgb_to_lab
from solver import BlendSolver, PartsOptions, SolverConstraints
from utils import (
    delta_e_verdict,
    format_result_text,
    load_palette,
    load_presets,
    palette_to_dataframe,
    recipes_to_dataframe,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

# ページ設定
st.set_page_config(
    page_title="TPVMixer - 調色ツール",
    page_icon="🎨",
    layout="wide"
)

st.title("🎨 TPVMixer")
st.subheader("指定色を基準色の配合で再現する")
st.markdown("---")


@st.cache_data
def load_data():
    palette = load_palette()
    presets = load_presets()
    return palette, presets


@st.cache_resource
def get_solver(codes, constraints):
    # 2色キャッシュの事前計算が重いので、パレットと制約ごとに使い回す
    selected = [c for c in palette if c.code in codes]
    return BlendSolver(selected, constraints)


def swatch(rgb, height=50, width="100%"):
    st.markdown(
        f'<div style="background-color: rgb{tuple(rgb)}; width: {width}; height: {height}px; border: 1px solid #ccc;"></div>',
        unsafe_allow_html=True
    )


try:
    palette, presets_data = load_data()
except (OSError, ValueError) as e:
    st.error(f"データファイルの読み込みに失敗しました: {e}")
    st.stop()

if 'recipes' not in st.session_state:
    st.session_state.recipes = None

# サイドバー: 設定
st.sidebar.header("⚙️ 設定")

# 1. 目標色
st.sidebar.subheader("1️⃣ 目標色を選ぶ")
input_method = st.sidebar.radio(
    "選択方法",
    ["プリセットから選ぶ", "写真をアップロード", "16進数で指定", "Lab値で指定"]
)

target_lab = None
target_name = ""

if input_method == "プリセットから選ぶ":
    categories = sorted(set(p['category'] for p in presets_data['presets']))
    selected_category = st.sidebar.selectbox("カテゴリ", ["全て"] + categories)
    if selected_category == "全て":
        filtered_presets = presets_data['presets']
    else:
        filtered_presets = [p for p in presets_data['presets']
                            if p['category'] == selected_category]

    preset_names = [f"{p['name']} ({p['category']})" for p in filtered_presets]
    idx = st.sidebar.selectbox("目標色", range(len(preset_names)),
                               format_func=lambda x: preset_names[x])
    preset = filtered_presets[idx]
    target_lab = (preset['L'], preset['a'], preset['b'])
    target_name = preset['name']

elif input_method == "写真をアップロード":
    uploaded_file = st.sidebar.file_uploader("画像ファイルをアップロード",
                                             type=['png', 'jpg', 'jpeg'])
    if uploaded_file is not None:
        image = Image.open(uploaded_file)
        st.sidebar.image(image, caption="アップロードされた画像", use_column_width=True)

        # 平均色をリニアRGBで取る
        img_array = np.asarray(image.convert('RGB'), dtype=float) / 255.0
        linear = np.where(img_array <= 0.04045, img_array / 12.92,
                          ((img_array + 0.055) / 1.055) ** 2.4)
        mean_linear = linear.reshape(-1, 3).mean(axis=0)
        srgb = np.where(mean_linear <= 0.0031308, mean_linear * 12.92,
                        1.055 * mean_linear ** (1 / 2.4) - 0.055)
        avg_rgb = tuple(int(round(v * 255)) for v in srgb)

        target_lab = srgb_to_lab(avg_rgb)
        target_name = "写真からの抽出色"
        st.sidebar.markdown(f"抽出RGB: {avg_rgb} ({rgb_to_hex(avg_rgb)})")

elif input_method == "16進数で指定":
    hex_color = st.sidebar.text_input("16進数カラーコード", "#808080")
    try:
        rgb = hex_to_rgb(hex_color)
        target_lab = srgb_to_lab(rgb)
        target_name = rgb_to_hex(rgb)
    except ValueError:
        st.sidebar.error("正しい16進数カラーコードを入力してください")

else:
    L = st.sidebar.number_input("L*", 0.0, 100.0, 50.0, 0.5)
    a = st.sidebar.number_input("a*", -128.0, 127.0, 0.0, 0.5)
    b = st.sidebar.number_input("b*", -128.0, 127.0, 0.0, 0.5)
    target_lab = (L, a, b)
    target_name = f"Lab({L:.1f}, {a:.1f}, {b:.1f})"

if target_lab is not None:
    st.sidebar.markdown(f"**プレビュー:** {target_name}")
    with st.sidebar:
        swatch(lab_to_srgb(target_lab))

# 2. 基準色
st.sidebar.markdown("---")
st.sidebar.subheader("2️⃣ 使用する基準色")
all_codes = [c.code for c in palette]
excluded = st.sidebar.multiselect("除外する基準色", all_codes, default=[])
codes = tuple(code for code in all_codes if code not in excluded)
st.sidebar.markdown(f"**使用可能な基準色:** {len(codes)}色")

# 3. 制約条件
st.sidebar.markdown("---")
st.sidebar.subheader("3️⃣ 制約条件")

max_components = st.sidebar.select_slider("最大使用色数", options=[1, 2, 3], value=3)
min_pct = st.sidebar.slider("1色あたりの最小比率(%)", 0, 30, 10, 1) / 100.0
step_pct = st.sidebar.select_slider("探索の刻み(%)", options=[1, 2, 5], value=2) / 100.0
mode = st.sidebar.radio("表示形式", ["percent", "parts"],
                        format_func=lambda m: "比率(%)" if m == "percent" else "整数パーツ")

parts_options = PartsOptions()
if mode == "parts":
    max_total = st.sidebar.slider("パーツ合計の上限", 3, 24, 18)
    min_per = st.sidebar.number_input("1色あたりの最小パーツ", 1, 5, 1)
    parts_options = PartsOptions(min_per=int(min_per), max_total=int(max_total))

force_components = st.sidebar.multiselect("必ず使う基準色", codes, default=[])
diversify = st.sidebar.checkbox("似た結果をまとめて多様な候補を表示", value=False)

st.sidebar.markdown("---")
calculate_button = st.sidebar.button("🔍 配合を計算", type="primary", use_container_width=True)

col1, col2 = st.columns([1, 1])

with col1:
    st.header("📋 設定内容")
    if target_lab is not None:
        st.markdown(f"**目標色:** {target_name}")
        st.markdown(f"**Lab値:** L={target_lab[0]:.1f}, a={target_lab[1]:.1f}, b={target_lab[2]:.1f}")
        swatch(lab_to_srgb(target_lab), height=100, width="200px")
    else:
        st.info("左のサイドバーから目標色を選択してください")

    st.markdown(f"**基準色:** {len(codes)}色 / **最大使用色数:** {max_components}色")
    if force_components:
        st.markdown(f"- 必須: {', '.join(force_components)}")

    with st.expander("基準色一覧"):
        st.dataframe(palette_to_dataframe([c for c in palette if c.code in codes]))

with col2:
    st.header("✨ 計算結果")

    if calculate_button:
        if target_lab is None:
            st.error("目標色を選択してください")
        elif not codes:
            st.error("使用可能な基準色がありません")
        else:
            with st.spinner("配合を計算中..."):
                try:
                    constraints = SolverConstraints(
                        max_components=max_components,
                        step_pct=step_pct,
                        min_pct=min_pct,
                        mode=mode,
                        force_components=tuple(force_components),
                        parts=parts_options,
                        diversify=diversify,
                    )
                    solver = get_solver(codes, constraints)
                    st.session_state.recipes = solver.solve(target_lab)
                except ValueError as e:
                    st.error(f"計算エラー: {e}")
                    st.session_state.recipes = None

    recipes = st.session_state.recipes
    if recipes and target_lab is not None:
        best = recipes[0]
        if best.delta_e < 3.0:
            st.success(f"✅ {delta_e_verdict(best.delta_e)} (ΔE = {best.delta_e:.2f})")
        elif best.delta_e < 10.0:
            st.info(f"ℹ️ {delta_e_verdict(best.delta_e)} (ΔE = {best.delta_e:.2f})")
        else:
            st.warning(f"⚠️ {delta_e_verdict(best.delta_e)} (ΔE = {best.delta_e:.2f})")

        df = recipes_to_dataframe(recipes)
        st.dataframe(df, use_container_width=True)

        st.markdown("### 🎨 混色結果プレビュー")
        col_target, col_mixed = st.columns(2)
        with col_target:
            st.markdown("**目標色**")
            swatch(lab_to_srgb(target_lab), height=80)
        with col_mixed:
            st.markdown("**1位の配合**")
            swatch(best.rgb, height=80)

        st.markdown("### 📄 テキスト出力")
        by_code = {c.code: c for c in palette}
        st.code(format_result_text(best, by_code), language="text")

        st.download_button("CSVでダウンロード", df.to_csv(index=False),
                           file_name="tpv-recipes.csv", mime="text/csv")
        export = {
            "target": {"name": target_name, "lab": list(target_lab)},
            "recipes": [r.to_dict() for r in recipes],
        }
        st.download_button("JSONでダウンロード",
                           json.dumps(export, ensure_ascii=False, indent=2),
                           file_name="tpv-recipes.json", mime="application/json")
    elif recipes is not None and not recipes:
        st.warning("条件を満たす配合が見つかりませんでした")
    else:
        st.info("「配合を計算」ボタンを押してください")

st.markdown("---")
with st.expander("📖 使い方"):
    st.markdown("""
    ### 基本的な使い方

    1. **目標色を選ぶ**: プリセット・写真・16進数・Lab値から指定
    2. **基準色を選ぶ**: 使わない基準色は除外できます
    3. **制約条件を設定**
       - 最大使用色数: 混ぜる基準色の数 (1〜3)
       - 最小比率: 少なすぎて計量できない配合を避けます
       - 整数パーツ: 「2パーツ + 1パーツ」のような計量しやすい比で表示
    4. **計算ボタンを押す**

    ### ΔE00 (色差)について
    - **0〜1**: ほぼ見分けがつかない
    - **1〜3**: 非常に近い
    - **3〜6**: 十分近い
    - **6〜10**: やや差がある
    - **10以上**: 差が大きい (基準色を増やすと改善)
    """)
