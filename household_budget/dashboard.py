"""Streamlit app for household budgets.

One page per budget year: the monthly table with income, expenses and
running balance, charts, a single-month view, and the forms to add and
edit entries, import a CSV file, transfer rows from another year and
save the starting balance.

To run the dashboard from the command line::

    streamlit run household_budget/dashboard.py

or use ``run_dashboard.py`` in the project root.
"""

from __future__ import annotations

import math
import os
import sys
from datetime import date
from typing import Dict, List, Optional, Sequence

import pandas as pd
import streamlit as st

# Support both ``streamlit run household_budget/dashboard.py`` and
# package execution.
if __package__:
    from . import db
    from . import visualization as viz
    from .aggregation import aggregate, entries_frame, month_snapshot, summary_frame
    from .config import DEFAULT_USER, configure_logging
    from .csv_import import import_csv_rows, read_csv_rows, validate_csv_rows
    from .exceptions import BudgetError
    from .formatting import format_currency, month_labels
    from .models import Budget, Category, Entry, EntryType, Settings
    from .patterns import Pattern, detect, expand, repeating_amount
    from .transfer import transfer_rows_from_budget
else:
    CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
    PARENT_DIR = os.path.dirname(CURRENT_DIR)
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from household_budget import db  # type: ignore
    from household_budget import visualization as viz  # type: ignore
    from household_budget.aggregation import aggregate, entries_frame, month_snapshot, summary_frame  # type: ignore
    from household_budget.config import DEFAULT_USER, configure_logging  # type: ignore
    from household_budget.csv_import import import_csv_rows, read_csv_rows, validate_csv_rows  # type: ignore
    from household_budget.exceptions import BudgetError  # type: ignore
    from household_budget.formatting import format_currency, month_labels  # type: ignore
    from household_budget.models import Budget, Category, Entry, EntryType, Settings  # type: ignore
    from household_budget.patterns import Pattern, detect, expand, repeating_amount  # type: ignore
    from household_budget.transfer import transfer_rows_from_budget  # type: ignore

PATTERN_LABELS = {
    Pattern.CUSTOM: "Custom",
    Pattern.MONTHLY: "Monthly",
    Pattern.QUARTERLY: "Quarterly",
    Pattern.HALF_YEARLY: "Half-yearly",
    Pattern.YEARLY: "Yearly",
}


def parse_amount_input(value: object) -> float:
    """Read a number typed into a form field.

    Raises:
        ValueError: If the field is empty or not a finite number.
    """
    text = str(value).strip().replace(',', '.')
    if not text:
        raise ValueError("Amount is required")
    try:
        number = float(text)
    except ValueError:
        raise ValueError(f"Amount must be a number, got '{value}'") from None
    if not math.isfinite(number):
        raise ValueError(f"Amount must be a number, got '{value}'")
    return number


def amounts_for_pattern(
    pattern: Pattern | str,
    repeating: object,
    custom_amounts: Sequence[object],
) -> List[float]:
    """Monthly amounts submitted by the entry form.

    Raises:
        ValueError: If an amount is unreadable, the repeating amount is
            not above 0, or every custom month is 0.
    """
    pattern = Pattern(pattern)
    if pattern is Pattern.CUSTOM:
        amounts = [parse_amount_input(v) for v in custom_amounts]
        if not any(a > 0 for a in amounts):
            raise ValueError("At least one month must have an amount > 0")
        return amounts
    amount = parse_amount_input(repeating)
    if amount <= 0:
        raise ValueError("Amount must be greater than 0")
    return expand(pattern, amount)


def _rerun(message: Optional[str] = None) -> None:
    """Rerun the script, keeping ``message`` to show on the next run."""
    if message:
        st.session_state["flash_message"] = message
    st.rerun()


def _show_flash_message() -> None:
    message = st.session_state.pop("flash_message", None)
    if message:
        st.success(message)


def _amount_inputs(key: str, initial: Sequence[float], locale: str) -> List[float]:
    cols = st.columns(6)
    values = []
    for idx, label in enumerate(month_labels(locale)):
        with cols[idx % 6]:
            values.append(
                st.number_input(label, min_value=0.0, value=float(initial[idx]), step=100.0, key=f"{key}_{idx}")
            )
    return values


def render_budget_list(budgets: List[Budget], summaries: Dict[int, float], settings: Settings) -> Optional[int]:
    """Sidebar list of budgets with start and end balance; returns the selected id."""
    st.sidebar.header("Budgets")
    if not budgets:
        st.sidebar.info("No budgets yet. Create one below.")
        return None
    labels = {b.id: f"{b.name} ({b.year})" for b in budgets}
    if "pending_selected_budget_id" in st.session_state:
        st.session_state["selected_budget_id"] = st.session_state.pop("pending_selected_budget_id")
    selected = st.sidebar.radio(
        "Select budget", options=list(labels.keys()), format_func=labels.get, key="selected_budget_id"
    )
    for budget in budgets:
        st.sidebar.caption(
            f"{labels[budget.id]}: start {format_currency(budget.starting_balance, settings.currency, settings.locale)}"
            f" · end {format_currency(summaries.get(budget.id, 0.0), settings.currency, settings.locale)}"
        )
    return selected


def render_create_budget(user: str, budgets: List[Budget], categories: List[Category]) -> None:
    with st.sidebar.expander("➕ New budget"):
        name = st.text_input("Name", key="new_budget_name")
        year = st.number_input("Year", min_value=1900, max_value=2999, value=date.today().year, step=1)
        source_options = [None] + [b.id for b in budgets]
        labels = {b.id: f"{b.name} ({b.year})" for b in budgets}
        source_id = st.selectbox(
            "Copy from budget",
            options=source_options,
            format_func=lambda bid: "Start empty" if bid is None else labels[bid],
        )
        include_balance = st.checkbox("Transfer balance", value=True, disabled=source_id is None)
        include_income = st.checkbox("Transfer income rows", value=True, disabled=source_id is None)
        include_expense = st.checkbox("Transfer expense rows", value=True, disabled=source_id is None)
        upload = st.file_uploader("…or import a CSV file", type=["csv"], key="new_budget_csv")

        validation = None
        if upload is not None:
            validation = _render_csv_validation(upload, [c.name for c in categories])

        if st.button("Create budget", use_container_width=True):
            try:
                budget_id = db.create_budget(user, int(year), name)
                message = None
                if validation is not None and validation.can_import:
                    count = import_csv_rows(user, budget_id, validation.valid_rows, validation.missing_categories)
                    message = f"Imported {count} rows"
                elif source_id is not None and (include_balance or include_income or include_expense):
                    result = transfer_rows_from_budget(
                        user, budget_id, source_id, include_balance, include_income, include_expense
                    )
                    if result.balance_to_transfer is not None:
                        db.update_starting_balance(user, budget_id, result.balance_to_transfer)
                    message = f"Copied {result.copied_entry_count} entries"
                st.session_state["pending_selected_budget_id"] = budget_id
                _rerun(message)
            except BudgetError as e:
                st.error(f"Failed to create budget: {e}")


def _render_csv_validation(upload, existing_category_names: List[str]):
    try:
        raw_rows = read_csv_rows(upload)
    except BudgetError as e:
        st.error(str(e))
        return None
    validation = validate_csv_rows(raw_rows, existing_category_names)
    st.success(f"{len(validation.valid_rows)} valid row{'s' if len(validation.valid_rows) != 1 else ''}")
    if validation.missing_categories:
        st.info("These categories will be created: " + ", ".join(validation.missing_categories))
    if validation.errors:
        st.error(
            f"{len(validation.errors)} validation error{'s' if len(validation.errors) != 1 else ''}:\n\n"
            + "\n".join(f"- {error}" for error in validation.errors)
        )
    return validation


def render_starting_balance(user: str, budget: Budget) -> float:
    """Starting balance field; the value is only stored when saved."""
    col1, col2 = st.columns([3, 1])
    key = f"starting_balance_{budget.id}"
    if "pending_starting_balance" in st.session_state:
        st.session_state[key] = st.session_state.pop("pending_starting_balance")
    value = col1.number_input("Starting balance", value=float(budget.starting_balance), step=100.0, key=key)
    if col2.button("Save", key=f"save_{key}", disabled=value == budget.starting_balance):
        db.update_starting_balance(user, budget.id, value)
        st.toast("Starting balance saved")
    return value


def render_summary(entries: List[Entry], starting_balance: float, names: Dict[int, str], settings: Settings) -> None:
    summary = aggregate(entries, starting_balance, names)
    fmt = lambda value: format_currency(value, settings.currency, settings.locale)  # noqa: E731

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", fmt(summary.total_income))
    col2.metric("Expenses", fmt(summary.total_expense))
    col3.metric("Net", fmt(summary.grand_total))
    col4.metric("End balance", fmt(summary.end_balance))

    table = entries_frame(entries, names, settings.locale)
    monthly = summary_frame(summary, settings.locale)
    totals = pd.DataFrame(
        [monthly.set_index("Month")["Net"].rename("Total"), monthly.set_index("Month")["Balance"]]
    )
    st.dataframe(table.drop(columns=["id"]), use_container_width=True, hide_index=True)
    st.dataframe(totals, use_container_width=True)

    chart_col1, chart_col2 = st.columns(2)
    chart_col1.plotly_chart(viz.create_income_expense_chart(monthly), use_container_width=True)
    chart_col2.plotly_chart(viz.create_running_balance_chart(monthly), use_container_width=True)
    st.plotly_chart(viz.create_category_totals_chart(summary.category_totals), use_container_width=True)


def render_month_view(entries: List[Entry], starting_balance: float, names: Dict[int, str], settings: Settings) -> None:
    labels = month_labels(settings.locale)
    month = st.selectbox("Month", options=list(range(1, 13)), format_func=lambda m: labels[m - 1],
                         index=date.today().month - 1)
    snapshot = month_snapshot(entries, starting_balance, month)
    fmt = lambda value: format_currency(value, settings.currency, settings.locale)  # noqa: E731
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Start of month", fmt(snapshot.starting_balance))
    col2.metric("Income", fmt(snapshot.total_income))
    col3.metric("Expenses", fmt(snapshot.total_expense))
    col4.metric("End of month", fmt(snapshot.end_balance))
    for title, group in (("Income", snapshot.income_entries), ("Expenses", snapshot.expense_entries)):
        st.subheader(title)
        rows = [
            {"Description": e.description, "Category": names.get(e.category_id, "Unknown"),
             "Amount": e.amounts[month - 1]}
            for e in group
        ]
        st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)


def render_entry_form(user: str, budget_id: int, categories: List[Category], settings: Settings) -> None:
    if not categories:
        st.info("No categories yet. Create one to get started!")
        return
    description = st.text_input("Description", key="new_entry_description")
    category_id = st.selectbox("Category", options=[c.id for c in categories],
                               format_func={c.id: c.name for c in categories}.get, key="new_entry_category")
    entry_type = st.radio("Type", options=[t.value for t in EntryType], horizontal=True, key="new_entry_type")
    pattern = st.selectbox("Pattern", options=list(Pattern), format_func=PATTERN_LABELS.get, key="new_entry_pattern")
    if pattern is Pattern.CUSTOM:
        amounts = _amount_inputs("new_entry", [0.0] * 12, settings.locale)
        repeating = 0
    else:
        repeating = st.text_input("Amount", key="new_entry_repeating")
        amounts = []
    if st.button("Create entry"):
        try:
            db.create_entry(user, budget_id, category_id, description, entry_type,
                            amounts_for_pattern(pattern, repeating, amounts))
            _rerun()
        except (ValueError, BudgetError) as e:
            st.error(f"Failed to create entry: {e}")


def render_edit_entry(user: str, entries: List[Entry], categories: List[Category], settings: Settings) -> None:
    if not entries:
        st.info("No entries to edit.")
        return
    by_id = {e.id: e for e in entries}
    entry_id = st.selectbox("Entry", options=list(by_id), format_func=lambda i: by_id[i].description)
    entry = by_id[entry_id]
    detected = detect(entry.amounts)

    description = st.text_input("Description", value=entry.description, key=f"edit_desc_{entry_id}")
    category_ids = [c.id for c in categories]
    category_id = st.selectbox(
        "Category", options=category_ids, format_func={c.id: c.name for c in categories}.get,
        index=category_ids.index(entry.category_id) if entry.category_id in category_ids else 0,
        key=f"edit_cat_{entry_id}",
    )
    entry_type = st.radio("Type", options=[t.value for t in EntryType], horizontal=True,
                          index=list(EntryType).index(entry.entry_type), key=f"edit_type_{entry_id}")
    pattern = st.selectbox("Pattern", options=list(Pattern), format_func=PATTERN_LABELS.get,
                           index=list(Pattern).index(detected), key=f"edit_pattern_{entry_id}")
    if pattern is Pattern.CUSTOM:
        amounts = _amount_inputs(f"edit_{entry_id}", entry.amounts, settings.locale)
        repeating = 0
    else:
        prefill = repeating_amount(entry.amounts)
        repeating = st.text_input("Amount", value="" if prefill is None else f"{prefill:g}",
                                  key=f"edit_repeating_{entry_id}")
        amounts = []

    save_col, delete_col = st.columns(2)
    if save_col.button("Save entry", key=f"save_entry_{entry_id}"):
        try:
            db.update_entry(
                user, entry_id, description, entry_type, category_id,
                amounts_for_pattern(pattern, repeating, amounts),
            )
            _rerun("Entry saved")
        except (ValueError, BudgetError) as e:
            st.error(f"Failed to update entry: {e}")
    if delete_col.button("Delete entry", key=f"delete_entry_{entry_id}"):
        db.delete_entry(user, entry_id)
        _rerun()


def render_transfer(user: str, budget: Budget, other_budgets: List[Budget]) -> None:
    if not other_budgets:
        st.info("Create another budget to transfer from.")
        return
    labels = {b.id: f"{b.name} ({b.year})" for b in other_budgets}
    source_id = st.selectbox("Source budget", options=list(labels), format_func=labels.get)
    include_balance = st.checkbox("Balance", key="transfer_balance")
    include_income = st.checkbox("Income rows", key="transfer_income")
    include_expense = st.checkbox("Expense rows", key="transfer_expense")
    if st.button("Transfer", disabled=not (include_balance or include_income or include_expense)):
        try:
            result = transfer_rows_from_budget(
                user, budget.id, source_id, include_balance, include_income, include_expense
            )
        except BudgetError as e:
            st.error(f"Failed to transfer data: {e}")
            return
        if result.balance_to_transfer is not None:
            # Filled into the starting balance field; saving it is up to the user.
            st.session_state["pending_starting_balance"] = result.balance_to_transfer
        _rerun(f"Copied {result.copied_entry_count} entries")


def render_csv_import(user: str, budget_id: int, categories: List[Category]) -> None:
    upload = st.file_uploader("CSV file", type=["csv"], key=f"import_csv_{budget_id}")
    if upload is None:
        st.caption("Columns: Description, Category, Type (income/expense), then one column per month.")
        return
    validation = _render_csv_validation(upload, [c.name for c in categories])
    if validation is not None and st.button("Import", disabled=not validation.can_import):
        try:
            count = import_csv_rows(user, budget_id, validation.valid_rows, validation.missing_categories)
            _rerun(f"Imported {count} rows")
        except BudgetError as e:
            st.error(str(e))


def render_categories(user: str, categories: List[Category]) -> None:
    name = st.text_input("New category", key="new_category_name")
    if st.button("Create category"):
        try:
            db.create_category(user, name)
            _rerun()
        except ValueError as e:
            st.error(str(e))
    if categories:
        st.dataframe(pd.DataFrame([{"Name": c.name, "Order": c.sort_order} for c in categories]),
                     use_container_width=True, hide_index=True)


def render_settings(user: str, settings: Settings) -> None:
    with st.sidebar.expander("⚙️ Settings"):
        currency = st.text_input("Currency", value=settings.currency)
        locale = st.text_input("Locale", value=settings.locale)
        if st.button("Save settings"):
            db.update_settings(user, currency=currency, locale=locale)
            _rerun()


def main() -> None:
    """Entry point for the Streamlit app."""
    st.set_page_config(page_title="Household Budget", page_icon="📒", layout="wide")
    configure_logging()
    db.init_db()

    _show_flash_message()
    user = DEFAULT_USER
    settings = db.get_settings(user)
    budgets = db.fetch_budgets(user)
    categories = db.fetch_categories(user)
    names = db.fetch_category_map(user)
    end_balances = {
        b.id: aggregate(db.fetch_entries(user, b.id), b.starting_balance).end_balance for b in budgets
    }

    selected_id = render_budget_list(budgets, end_balances, settings)
    render_create_budget(user, budgets, categories)
    render_settings(user, settings)

    if selected_id is None:
        st.title("Household Budget")
        st.info("Create a budget in the sidebar to begin.")
        return

    budget = next(b for b in budgets if b.id == selected_id)
    entries = db.fetch_entries(user, budget.id)
    st.title(f"{budget.name} ({budget.year})")
    starting_balance = render_starting_balance(user, budget)

    overview_tab, month_tab, entries_tab, import_tab, transfer_tab, categories_tab = st.tabs([
        "📊 Overview",
        "📅 Month",
        "✏️ Entries",
        "📥 Import CSV",
        "🔀 Transfer",
        "🏷 Categories",
    ])
    with overview_tab:
        render_summary(entries, starting_balance, names, settings)
    with month_tab:
        render_month_view(entries, starting_balance, names, settings)
    with entries_tab:
        st.subheader("Add entry")
        render_entry_form(user, budget.id, categories, settings)
        st.divider()
        st.subheader("Edit entry")
        render_edit_entry(user, entries, categories, settings)
    with import_tab:
        render_csv_import(user, budget.id, categories)
    with transfer_tab:
        render_transfer(user, budget, [b for b in budgets if b.id != budget.id])
    with categories_tab:
        render_categories(user, categories)


if __name__ == "__main__":
    main()
