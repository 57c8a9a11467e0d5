# frontend/app.py
# Shelf – asset tracking UI
#
# Run from repo root: streamlit run frontend/app.py

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from frontend.api_client import api_request, error_message
from frontend.auth import can_import_assets, clear_auth, init_auth_state, is_authenticated, set_auth
from frontend.bulk_dialogs import (
    BulkDialogKind,
    DialogContentProps,
    DialogRegistry,
    DialogTrigger,
    RenderContent,
    StaticContent,
    TriggerDisabled,
    dialog_description,
    dialog_title,
    resolve_content,
)
from frontend.bulk_submitter import BulkActionResult, BulkActionSubmitter, http_transport
from frontend.config import ENABLE_DEBUG_UI, ENV, IS_DEV, get_api_base_url
from frontend.list_header import click_header, header_label, header_state
from frontend.list_params import PER_PAGE_VALUES, ListParams
from frontend.selection import ListItem, SelectionStore

PAGES = ["Dashboard", "Assets", "Asset detail", "Catalog", "Import"]

# Catalog URL segment -> tab label
CATALOG_SEGMENTS = {
    "categories": "Categories",
    "locations": "Locations",
    "tags": "Tags",
    "team-members": "Team members",
}

# Menu order of bulk actions
BULK_MENU = [
    (BulkDialogKind.location, "Update location"),
    (BulkDialogKind.category, "Update category"),
    (BulkDialogKind.tag_add, "Add tags"),
    (BulkDialogKind.tag_remove, "Remove tags"),
    (BulkDialogKind.assign_custody, "Assign custody"),
    (BulkDialogKind.release_custody, "Release custody"),
    (BulkDialogKind.activate, "Mark active"),
    (BulkDialogKind.deactivate, "Mark inactive"),
    (BulkDialogKind.archive, "Archive"),
    (BulkDialogKind.cancel, "Cancel"),
    (BulkDialogKind.trash, "Delete"),
]

NO_SELECTION_REASON = "Select at least one asset"


# --------------------------------------------------------------------
# Session state helpers
# --------------------------------------------------------------------
def init_state() -> None:
    ss = st.session_state
    ss.setdefault("nav_page", "Dashboard")
    ss.setdefault("detail_item_id", None)
    ss.setdefault("_flash", None)


def go_to(page: str) -> None:
    st.session_state["nav_page"] = page


def flash(message: str) -> None:
    """Success message shown once after the next rerun."""
    st.session_state["_flash"] = message


def show_flash() -> None:
    message = st.session_state.get("_flash")
    if message:
        st.success(message)
        st.session_state["_flash"] = None


def load_profile() -> None:
    """Fetch /api/me once per token so the UI knows the caller's tier."""
    ss = st.session_state
    if not is_authenticated() or ss.get("current_user"):
        return
    resp = api_request("GET", "/api/me")
    if resp is not None and resp.status_code == 200:
        ss["current_user"] = resp.json()


def fetch_json(path: str, params: Optional[Dict[str, Any]] = None, default: Any = None) -> Any:
    resp = api_request("GET", path, params=params)
    if resp is None:
        return default
    if resp.status_code != 200:
        st.error(error_message(resp, f"Failed to load {path}"))
        return default
    return resp.json()


def catalog_options(segment: str) -> List[Dict[str, Any]]:
    body = fetch_json(f"/api/{segment}", default={"items": []})
    return body.get("items", [])


# --------------------------------------------------------------------
# Sidebar
# --------------------------------------------------------------------
def render_sidebar() -> None:
    ss = st.session_state
    with st.sidebar:
        st.markdown("## 📦 Shelf")

        if is_authenticated():
            user = ss.get("current_user") or {}
            st.caption(f"{user.get('email', 'Signed in')} · {user.get('tier', '?')} tier")
            page = st.radio("Navigate", PAGES, index=PAGES.index(ss["nav_page"]), key="nav_radio")
            if page != ss["nav_page"]:
                go_to(page)
                st.rerun()
            if st.button("Sign out", use_container_width=True):
                clear_auth()
                st.rerun()
        else:
            st.info("Paste an access token to continue.")
            with st.form("token_form"):
                token = st.text_input("Access token", type="password")
                if st.form_submit_button("Use token") and token.strip():
                    set_auth(token.strip())
                    st.rerun()

        if ENABLE_DEBUG_UI:
            with st.expander("Debug"):
                st.write({"env": ENV, "backend_status": ss.get("_backend_status")})


# --------------------------------------------------------------------
# Dashboard
# --------------------------------------------------------------------
def render_dashboard() -> None:
    st.markdown("## Dashboard")
    data = fetch_json("/api/dashboard")
    if not data:
        return

    st.metric("Total assets", data["total_items"])

    col1, col2 = st.columns(2)
    with col1:
        st.markdown("### Newest assets")
        if data["new_items"]:
            for item in data["new_items"]:
                if st.button(item["title"], key=f"dash_item_{item['id']}"):
                    st.session_state["detail_item_id"] = item["id"]
                    go_to("Asset detail")
                    st.rerun()
        else:
            st.info("No assets yet.")

    with col2:
        st.markdown("### Custodians")
        if data["custodians"]:
            df = pd.DataFrame(data["custodians"])
            st.dataframe(df[["name", "count"]], hide_index=True, use_container_width=True,
                         column_config={"name": "Team member", "count": "Assets in custody"})
        else:
            st.info("Nothing is in custody.")

    st.markdown("### Assets created per month")
    months = pd.DataFrame(data["items_created_each_month"]).set_index("month")
    st.bar_chart(months["count"])


# --------------------------------------------------------------------
# Assets list + bulk actions
# --------------------------------------------------------------------
def current_list_params() -> ListParams:
    qp = st.query_params
    return ListParams.from_query({
        "page": qp.get("page"),
        "per_page": qp.get("per_page"),
        "s": qp.get("s"),
        "category": qp.get_all("category"),
    })


def apply_list_params(params: ListParams) -> None:
    query: Dict[str, Any] = {"page": str(params.page), "per_page": str(params.per_page)}
    if params.search:
        query["s"] = params.search
    if params.category_ids:
        query["category"] = list(params.category_ids)
    st.query_params.from_dict(query)


def reload_selected(ids: List[str]) -> List[ListItem]:
    """Fetch current snapshots of the given items, 100 ids per request."""
    fresh: List[ListItem] = []
    for start in range(0, len(ids), 100):
        chunk = ids[start:start + 100]
        resp = api_request("GET", "/api/assets", params={"ids": chunk, "per_page": 100}, show_errors=False)
        if resp is None or resp.status_code != 200:
            raise ConnectionError(error_message(resp, "Could not refresh selected assets"))
        fresh.extend(ListItem.from_api(row) for row in resp.json()["items"])
    return fresh


def build_triggers(selection: SelectionStore, submitters: Dict[BulkDialogKind, BulkActionSubmitter]) -> List[DialogTrigger]:
    selected = selection.items()
    in_custody = [i for i in selected if i.status == "in_custody"]

    def disabled_for(kind: BulkDialogKind) -> Optional[TriggerDisabled]:
        if not selected:
            return TriggerDisabled(NO_SELECTION_REASON)
        if kind is BulkDialogKind.assign_custody and in_custody:
            return TriggerDisabled("Some of the selected assets are already in custody")
        if kind is BulkDialogKind.release_custody and len(in_custody) != len(selected):
            return TriggerDisabled("Some of the selected assets are not in custody")
        return None

    return [
        DialogTrigger(kind, label=label, disabled=disabled_for(kind), on_click=submitters[kind].open)
        for kind, label in BULK_MENU
    ]


def dialog_content(kind: BulkDialogKind):
    """Form fields per kind; render callbacks return the action params."""

    def pick_one(segment: str, field: str, label: str):
        def render(props: DialogContentProps) -> Dict[str, Any]:
            options = catalog_options(segment)
            if not options:
                st.warning(f"No {CATALOG_SEGMENTS[segment].lower()} yet. Add some on the Catalog page.")
            chosen = st.selectbox(
                label,
                options=[o["id"] for o in options],
                format_func=lambda oid: next(o["name"] for o in options if o["id"] == oid),
                index=None,
                disabled=props.disabled,
                key=f"bulk_field_{kind.value}",
            )
            return {field: chosen}
        return RenderContent(render)

    def pick_tags(props: DialogContentProps) -> Dict[str, Any]:
        options = catalog_options("tags")
        chosen = st.multiselect(
            "Tags",
            options=[o["id"] for o in options],
            format_func=lambda oid: next(o["name"] for o in options if o["id"] == oid),
            disabled=props.disabled,
            key=f"bulk_field_{kind.value}",
        )
        return {"tagIds": chosen}

    if kind is BulkDialogKind.location:
        return pick_one("locations", "newLocationId", "Location")
    if kind is BulkDialogKind.category:
        return pick_one("categories", "categoryId", "Category")
    if kind is BulkDialogKind.assign_custody:
        return pick_one("team-members", "custodianId", "Custodian")
    if kind in (BulkDialogKind.tag_add, BulkDialogKind.tag_remove):
        return RenderContent(pick_tags)
    if kind is BulkDialogKind.trash:
        return StaticContent("Deleted assets cannot be restored.")
    return StaticContent("This changes every selected asset.")


def render_bulk_dialog(submitter: BulkActionSubmitter, params: ListParams) -> None:
    kind = submitter.kind
    with st.container(border=True):
        st.markdown(f"#### {dialog_title(kind)}")
        st.caption(dialog_description(kind, submitter.selection.count()))

        props = DialogContentProps(disabled=submitter.disabled, close_dialog=submitter.cancel, error=submitter.error)
        content = resolve_content(dialog_content(kind), props)
        action_params: Dict[str, Any] = content if isinstance(content, dict) else {}
        if isinstance(content, str):
            st.write(content)

        if submitter.error:
            st.error(submitter.error)

        col1, col2 = st.columns(2)
        confirm = col1.button("Confirm", type="primary", disabled=submitter.disabled, key=f"confirm_{kind.value}")
        col2.button("Cancel", disabled=submitter.disabled, key=f"cancel_{kind.value}", on_click=submitter.cancel)

        if confirm:
            with st.spinner("Applying..."):
                result = submitter.submit(action_params, search_params=params.to_query_string())
            if result is not None:
                # Success closed the dialog; failure left its error in session_state
                st.rerun()


def render_assets() -> None:
    ss = st.session_state
    show_flash()
    st.markdown("## Assets")

    params = current_list_params()
    categories = catalog_options("categories")

    col1, col2, col3 = st.columns([3, 3, 1])
    search = col1.text_input("Search by title", value=params.search)
    category_ids = col2.multiselect(
        "Category",
        options=[c["id"] for c in categories],
        default=[c for c in params.category_ids if any(x["id"] == c for x in categories)],
        format_func=lambda cid: next(c["name"] for c in categories if c["id"] == cid),
    )
    per_page = col3.selectbox("Per page", PER_PAGE_VALUES, index=PER_PAGE_VALUES.index(params.per_page))

    if (search.strip(), tuple(category_ids), per_page) != (params.search, params.category_ids, params.per_page):
        params = ListParams(page=1, per_page=per_page, search=search.strip(), category_ids=tuple(category_ids))
        apply_list_params(params)
        st.rerun()

    body = fetch_json("/api/assets", params=params.to_api_params())
    if body is None:
        return
    page_items = [ListItem.from_api(row) for row in body["items"]]

    selection = SelectionStore(ss)
    dialogs = DialogRegistry(ss)

    def on_bulk_success(result: BulkActionResult) -> None:
        flash(f"Updated {result.data.get('affected', 0)} asset(s).")

    submitters = {
        kind: BulkActionSubmitter(
            kind,
            selection,
            dialogs,
            http_transport(api_request),
            reload_selected,
            on_success=on_bulk_success,
            session_state=ss,
        )
        for kind in BulkDialogKind
    }

    # Toolbar: header checkbox + actions menu
    state = header_state(selection.count(), len(page_items))
    bar1, bar2, bar3 = st.columns([2, 2, 3])
    bar1.button(header_label(state), on_click=click_header, args=(selection, page_items),
                disabled=not page_items and selection.count() == 0)
    bar2.caption(f"{selection.count()} selected · {body['total']} total")
    with bar3.popover("Bulk actions", use_container_width=True):
        for trigger in build_triggers(selection, submitters):
            if st.button(trigger.label, key=f"trigger_{trigger.kind.value}",
                         disabled=trigger.is_disabled, help=trigger.reason, use_container_width=True):
                # One dialog at a time
                for other in dialogs.open_kinds():
                    submitters[other].cancel()
                if trigger.activate(dialogs):
                    st.rerun()

    open_kinds = dialogs.open_kinds()
    if open_kinds:
        render_bulk_dialog(submitters[open_kinds[0]], params)

    if not page_items:
        st.info("No assets match these filters.")
    for item in page_items:
        key = f"row_selected_{item.id}"
        ss[key] = selection.is_selected(item.id)
        cols = st.columns([0.5, 4, 2, 2, 2, 1])
        cols[0].checkbox("Select", key=key, label_visibility="collapsed",
                         on_change=selection.toggle, args=(item,))
        cols[1].markdown(f"**{item.title}**" + (f"  \n{', '.join(item.tags)}" if item.tags else ""))
        cols[2].write(item.category or "—")
        cols[3].write(item.location or "—")
        cols[4].write(item.custodian or (item.status or "").replace("_", " "))
        if cols[5].button("Open", key=f"open_{item.id}"):
            ss["detail_item_id"] = item.id
            go_to("Asset detail")
            st.rerun()

    total_pages = params.total_pages(body["total"])
    prev_col, info_col, next_col = st.columns([1, 2, 1])
    if prev_col.button("← Previous", disabled=params.page <= 1):
        apply_list_params(ListParams(params.page - 1, params.per_page, params.search, params.category_ids))
        st.rerun()
    info_col.caption(f"Page {params.page} of {total_pages}")
    if next_col.button("Next →", disabled=params.page >= total_pages):
        apply_list_params(ListParams(params.page + 1, params.per_page, params.search, params.category_ids))
        st.rerun()

    with st.expander("New asset"):
        with st.form("create_asset", clear_on_submit=True):
            title = st.text_input("Title")
            description = st.text_area("Description")
            category_id = st.selectbox(
                "Category", [None] + [c["id"] for c in categories],
                format_func=lambda cid: "—" if cid is None else next(c["name"] for c in categories if c["id"] == cid),
            )
            if st.form_submit_button("Create"):
                resp = api_request("POST", "/api/assets", json={
                    "title": title, "description": description or None, "category_id": category_id,
                })
                if resp is not None and resp.status_code == 200:
                    flash(f"Created {resp.json()['title']}.")
                    st.rerun()
                elif resp is not None:
                    st.error(error_message(resp, "Could not create asset"))


# --------------------------------------------------------------------
# Asset detail
# --------------------------------------------------------------------
def render_asset_detail() -> None:
    ss = st.session_state
    show_flash()
    item_id = ss.get("detail_item_id")
    if not item_id:
        st.info("Pick an asset on the Assets page.")
        return

    item = fetch_json(f"/api/assets/{item_id}")
    if not item:
        return

    st.markdown(f"## {item['title']}")
    st.caption(f"{item['state']} · {item['status'].replace('_', ' ')}")
    if item.get("description"):
        st.write(item["description"])

    col1, col2 = st.columns([2, 1])
    with col1:
        st.write({
            "Category": (item.get("category") or {}).get("name"),
            "Location": (item.get("location") or {}).get("name"),
            "Custodian": (item.get("custodian") or {}).get("name"),
            "Tags": ", ".join(t["name"] for t in item.get("tags", [])) or None,
            "QR codes": [q["id"] for q in item.get("qr_codes", [])],
        })
    with col2:
        if item.get("main_image"):
            st.image(f"{get_api_base_url()}{item['main_image']}")
        upload = st.file_uploader("Main image", type=["png", "jpg", "jpeg", "webp", "gif"])
        if upload is not None and st.button("Upload image"):
            resp = api_request(
                "POST", f"/api/assets/{item_id}/main-image",
                files={"mainImage": (upload.name, upload.getvalue(), upload.type)},
            )
            if resp is not None and resp.status_code == 200:
                flash("Image updated.")
                st.rerun()
            elif resp is not None:
                st.error(error_message(resp, "Couldn't upload image"))

    st.markdown("### Notes")
    with st.form("add_note", clear_on_submit=True):
        content = st.text_area("New note")
        if st.form_submit_button("Add note") and content.strip():
            resp = api_request("POST", f"/api/assets/{item_id}/notes", json={"content": content})
            if resp is not None and resp.status_code == 200:
                st.rerun()
            elif resp is not None:
                st.error(error_message(resp, "Could not add note"))

    for note in item.get("notes", []):
        c1, c2 = st.columns([6, 1])
        c1.markdown(f"{note['content']}  \n_{note['created_at'][:16].replace('T', ' ')}_")
        if c2.button("Delete", key=f"del_note_{note['id']}"):
            resp = api_request("DELETE", f"/api/assets/{item_id}/notes/{note['id']}")
            if resp is not None and resp.status_code == 204:
                st.rerun()

    st.markdown("---")
    confirm = st.checkbox("I want to delete this asset", key=f"confirm_delete_{item_id}")
    if st.button("Delete asset", disabled=not confirm):
        resp = api_request("DELETE", f"/api/assets/{item_id}")
        if resp is not None and resp.status_code == 204:
            SelectionStore(ss).remove(item_id)
            ss["detail_item_id"] = None
            flash("Asset deleted.")
            go_to("Assets")
            st.rerun()


# --------------------------------------------------------------------
# Catalog (categories, locations, tags, team members)
# --------------------------------------------------------------------
def render_catalog_tab(segment: str) -> None:
    rows = catalog_options(segment)
    if rows:
        df = pd.DataFrame(rows)
        columns = [c for c in ("name", "description", "color", "address", "created_at") if c in df.columns]
        st.dataframe(df[columns], hide_index=True, use_container_width=True)
    else:
        st.info(f"No {CATALOG_SEGMENTS[segment].lower()} yet.")

    with st.form(f"create_{segment}", clear_on_submit=True):
        payload: Dict[str, Any] = {"name": st.text_input("Name")}
        if segment == "categories":
            payload["description"] = st.text_input("Description") or None
            payload["color"] = st.color_picker("Color", "#808080")
        if segment == "locations":
            payload["address"] = st.text_input("Address") or None
        if st.form_submit_button("Create"):
            resp = api_request("POST", f"/api/{segment}", json=payload)
            if resp is not None and resp.status_code == 200:
                flash(f"Created {payload['name']}.")
                st.rerun()
            elif resp is not None:
                st.error(error_message(resp, "Could not create"))

    if rows:
        target = st.selectbox("Delete", [None] + [r["id"] for r in rows], key=f"delete_pick_{segment}",
                              format_func=lambda rid: "—" if rid is None else next(r["name"] for r in rows if r["id"] == rid))
        confirm = st.checkbox("Confirm delete", key=f"delete_confirm_{segment}")
        if st.button("Delete", key=f"delete_btn_{segment}", disabled=not (target and confirm)):
            resp = api_request("DELETE", f"/api/{segment}/{target}")
            if resp is not None and resp.status_code == 204:
                flash("Deleted.")
                st.rerun()


def render_catalog() -> None:
    show_flash()
    st.markdown("## Catalog")
    tabs = st.tabs(list(CATALOG_SEGMENTS.values()))
    for tab, segment in zip(tabs, CATALOG_SEGMENTS):
        with tab:
            render_catalog_tab(segment)


# --------------------------------------------------------------------
# Import
# --------------------------------------------------------------------
def render_import() -> None:
    st.markdown("## Import assets")
    st.caption("CSV with a `title` column; optional `description` and `category` columns.")

    allowed = can_import_assets()
    reason = None if allowed else "CSV import is available on the premium tier."
    if reason:
        st.info(reason)

    upload = st.file_uploader("CSV file", type=["csv"], disabled=not allowed, help=reason)
    if st.button("Import", disabled=not allowed or upload is None, help=reason):
        resp = api_request("POST", "/api/assets/import",
                           files={"file": (upload.name, upload.getvalue(), "text/csv")}, timeout=60)
        if resp is not None and resp.status_code == 200:
            st.success(f"Imported {resp.json()['created']} asset(s).")
        elif resp is not None:
            st.error(error_message(resp, "Import failed"))


def main() -> None:
    st.set_page_config(page_title="Shelf", page_icon="📦", layout="wide")

    # Must run before any widget on every rerun
    init_auth_state()
    init_state()
    load_profile()

    ss = st.session_state
    if IS_DEV:
        print(f"[ROUTING] page={ss.get('nav_page')} | token_present={bool(ss.get('auth_token'))}")

    render_sidebar()

    if not is_authenticated():
        st.markdown("## 📦 Shelf")
        st.write("Track your equipment, where it is and who has it.")
        return

    nav_page = ss.get("nav_page", "Dashboard")
    if nav_page == "Dashboard":
        render_dashboard()
    elif nav_page == "Assets":
        render_assets()
    elif nav_page == "Asset detail":
        render_asset_detail()
    elif nav_page == "Catalog":
        render_catalog()
    elif nav_page == "Import":
        render_import()
    else:
        ss["nav_page"] = "Dashboard"
        render_dashboard()


if __name__ == "__main__":
    main()
