"""
Voltorb Flip Solver - Interactive Assistant

Run with: streamlit run app/demo.py
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import streamlit as st
from typing import List, Optional

from voltorb_flip import Cell, Clue, EvaluationResult, VoltorbFlipSolver
from voltorb_flip.utils import GRID_SIZE

TILE_OPTIONS = ["?", "1", "2", "3", "V"]


def render_board_html(
    grid: List[List[Cell]],
    result: EvaluationResult,
    row_clues: List[Clue],
    col_clues: List[Clue],
) -> str:
    """Render the board as HTML, toned by recommendation and risk."""
    detected = set(result.detected_voltorbs)
    cell_size = 64

    html = '<div style="font-family: monospace; line-height: 1.2;">'
    html += '<table style="border-collapse: collapse; margin: auto;">'

    for r in range(GRID_SIZE):
        html += "<tr>"
        for c in range(GRID_SIZE):
            cell = grid[r][c]
            stats = result.probabilities[r][c] if result.probabilities else None
            meta = ""

            if cell is Cell.VOLTORB or (cell is Cell.UNKNOWN and (r, c) in detected):
                label = "V"
                bg = "#ff6b6b"
                meta = "100% voltorb" if cell is Cell.UNKNOWN else ""
            elif cell is not Cell.UNKNOWN:
                label = cell.symbol
                bg = "#ffffff"
            else:
                label = "?"
                bg = "#c0c0c0"
                if stats is not None:
                    risk = round(stats.voltorb_probability * 100)
                    if result.is_recommended(r, c):
                        bg = "#7bd88f"
                        if result.mode == "certainty":
                            risk = 0
                    elif risk >= 50:
                        bg = "#ffb347"
                    meta = f"{risk}% risk<br/>EV {stats.expected_value:.2f}"

            html += f'''<td style="
                width: {cell_size}px; height: {cell_size}px;
                text-align: center;
                background: {bg};
                border: 1px solid #999;
                font-weight: bold;
                font-size: 18px;
            ">{label}<div style="font-size: 10px; font-weight: normal;">{meta}</div></td>'''

        html += f'<td style="padding-left: 8px; color: #0077aa;">{row_clues[r]}</td>'
        html += "</tr>"

    html += "<tr>"
    for clue in col_clues:
        html += f'<td style="text-align: center; color: #0077aa;">{clue}</td>'
    html += "<td></td></tr>"

    html += "</table></div>"
    return html


def clue_inputs(prefix: str, label: str, index: int) -> Clue:
    """Two text inputs for one clue; blanks mean "not entered yet"."""
    sum_col, voltorb_col = st.columns(2)
    with sum_col:
        sum_raw = st.text_input(f"{label} {index + 1} sum", key=f"{prefix}_sum_{index}")
    with voltorb_col:
        voltorb_raw = st.text_input(
            f"{label} {index + 1} voltorbs", key=f"{prefix}_volt_{index}"
        )
    return Clue.parse(sum_raw, voltorb_raw)


def reset_board() -> None:
    for key in list(st.session_state.keys()):
        if key.startswith(("row_", "col_", "tile_")):
            del st.session_state[key]


def main(solver: Optional[VoltorbFlipSolver] = None):
    st.set_page_config(
        page_title="Voltorb Flip Solver",
        page_icon="⚡",
        layout="wide",
    )

    st.title("Voltorb Flip Solver")
    st.markdown("""
    Enter clues, reveal tiles, and let the math guide you.
    """)

    solver = solver or VoltorbFlipSolver()

    with st.sidebar:
        st.header("Row clues")
        row_clues = [clue_inputs("row", "Row", r) for r in range(GRID_SIZE)]
        st.button("Reset board", on_click=reset_board)

    col1, col2 = st.columns([2, 1])

    with col1:
        st.subheader("Column clues")
        clue_cols = st.columns(GRID_SIZE)
        col_clues: List[Clue] = []
        for c, container in enumerate(clue_cols):
            with container:
                col_clues.append(clue_inputs("col", "Col", c))

        st.subheader("Revealed tiles")
        grid: List[List[Cell]] = []
        for r in range(GRID_SIZE):
            tile_cols = st.columns(GRID_SIZE)
            row: List[Cell] = []
            for c, container in enumerate(tile_cols):
                with container:
                    choice = st.selectbox(
                        f"Tile {r + 1},{c + 1}",
                        TILE_OPTIONS,
                        key=f"tile_{r}_{c}",
                        label_visibility="collapsed",
                    )
                row.append(Cell.parse(choice))
            grid.append(row)

        result = solver.evaluate(grid, row_clues, col_clues)

        st.subheader("Board")
        st.markdown(render_board_html(grid, result, row_clues, col_clues), unsafe_allow_html=True)

    with col2:
        st.subheader("Solver insights")

        if result.level_complete:
            st.success("Level complete! No more 2s or 3s left.")

        st.metric("Valid boards", result.solution_count)
        st.metric("Safest tiles", len(result.recommended))

        for issue in result.issues:
            st.warning(issue)

        st.markdown("---")
        st.markdown("**Strategy**")
        if result.mode == "certainty" or result.level_complete:
            st.info(result.advice)
        else:
            st.write(result.advice)

        st.markdown("""
        1. Enter row/column sums and voltorbs.
        2. Flip the highlighted tiles first.
        3. **Update the board** with the result (1/2/3).
        4. Repeat.
        """)


if __name__ == "__main__":
    main()
