"""
Streamlit console for the HEB shopper.
- Enter / clean a shopping list
- Start and cancel runs
- Watch per-item progress and the run log
"""

import streamlit as st
import requests

from heb_shopper.config import load_config

EXAMPLE_LIST = """Groceries

[Canned Goods & Soups]
2 cups Chicken or Veg Broth

[Dairy]
1 cup Milk

[Frozen Food]
1 cup Frozen Peas

[Meat]
1 cup Rotisserie Chicken (roughly chopped or shredded)

[Produce]
1 large Sweet Onion (finely chopped)
1 cup Carrots (shredded or chopped)
1 cup Celery (finely chopped)

[Other]
1 cup uncooked Orzo
1/2 cup Parmigiano (grated)"""

PHASE_ICONS = {
    "pending": "⏳",
    "searching": "🔍",
    "evaluating": "🧐",
    "adding-to-cart": "🛒",
    "completed": "✅",
    "error": "❌",
}

API_URL = load_config().api_base_url.rstrip("/")

# -------------------------------------------------
# Page config
# -------------------------------------------------
st.set_page_config(
    page_title="HEB Shopper",
    page_icon="🛒",
    layout="wide",
)

# -------------------------------------------------
# Session state
# -------------------------------------------------
if "shopping_list" not in st.session_state:
    st.session_state.shopping_list = ""

if "run_id" not in st.session_state:
    st.session_state.run_id = None


def fetch_snapshot():
    try:
        r = requests.get(f"{API_URL}/api/run", timeout=5)
        r.raise_for_status()
        return r.json()
    except requests.RequestException as e:
        st.error(f"API not reachable: {e}")
        return None


snapshot = fetch_snapshot()
status = snapshot["status"] if snapshot else "idle"
is_running = status in ("starting", "in-progress")
if snapshot and snapshot.get("run_id"):
    st.session_state.run_id = snapshot["run_id"]

# -------------------------------------------------
# Header
# -------------------------------------------------
st.markdown(
    "<h1 style='color:#d52b1e'>🛒 HEB Shopper</h1>",
    unsafe_allow_html=True
)
st.caption(f"Status: **{status.replace('-', ' ')}**" + (f" · Run `{st.session_state.run_id}`" if st.session_state.run_id else ""))
if snapshot and snapshot.get("message"):
    st.info(snapshot["message"])

tab_shop, tab_log = st.tabs(["🛍️ Shopping", "📜 Log"])

# =================================================
# SHOPPING TAB
# =================================================
with tab_shop:
    st.subheader("Shopping list")

    if st.button("📋 Load example", disabled=is_running):
        st.session_state.shopping_list = EXAMPLE_LIST
        st.rerun()

    st.text_area(
        "One item per line; [Section] headers are fine",
        key="shopping_list",
        height=260,
        disabled=is_running,
    )
    clean_with_ai = st.checkbox("✨ Clean up the list with AI first", disabled=is_running)

    col1, col2, col3 = st.columns(3)

    with col1:
        if st.button("🚀 Start shopping", disabled=is_running):
            if not st.session_state.shopping_list.strip():
                st.warning("Please enter items.")
                st.stop()
            try:
                r = requests.post(
                    f"{API_URL}/api/run",
                    json={"shopping_list": st.session_state.shopping_list, "clean_with_ai": clean_with_ai},
                    timeout=120,
                )
            except requests.RequestException as e:
                st.error(f"Could not start: {e}")
                st.stop()
            if r.status_code == 202:
                st.session_state.run_id = r.json()["run_id"]
                st.rerun()
            else:
                st.error(r.json().get("error_message", r.text))

    with col2:
        if st.button("🛑 Cancel", disabled=not is_running):
            try:
                requests.post(f"{API_URL}/api/run/{st.session_state.run_id}/cancel", timeout=5)
                st.warning("Cancellation requested")
            except requests.RequestException as e:
                st.error(f"Could not cancel: {e}")

    with col3:
        if st.button("🔄 Refresh"):
            st.rerun()

    # ---------------- ITEMS ----------------
    if snapshot and snapshot["items"]:
        items = snapshot["items"]
        done = sum(1 for i in items if i["phase"] in ("completed", "error"))
        st.progress(done / len(items), text=f"{done} of {len(items)} items processed")

        table = [{
            "": PHASE_ICONS.get(i["phase"], ""),
            "Item": i["item"]["name"],
            "Qty": " ".join(str(p) for p in (i["item"].get("quantity"), i["item"].get("unit")) if p),
            "Section": i["item"].get("category") or "",
            "Phase": i["phase"],
            "Detail": i.get("error") or i.get("detail") or "",
        } for i in items]

        st.dataframe(table, width="stretch", hide_index=True)

# =================================================
# LOG TAB
# =================================================
with tab_log:
    if snapshot and snapshot["logs"]:
        for entry in reversed(snapshot["logs"]):
            line = f"`{entry['level'].upper()}` {entry['message']}"
            if entry["level"] == "error":
                st.error(line)
            elif entry["level"] == "warn":
                st.warning(line)
            else:
                st.write(line)
    else:
        st.info("Start a run to see its log.")
